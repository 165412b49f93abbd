import logging
import os

from clang.cindex import CursorKind, StorageClass

from ast_model import Expr, ExprKind, FunctionBody, Stmt, StmtKind, StorageKind, Variable
from boolean_contexts import DEFAULT_ASSERTION_NAMES

logger = logging.getLogger(__name__)

_FUNCTION_KINDS = {
    CursorKind.FUNCTION_DECL,
    CursorKind.CXX_METHOD,
    CursorKind.CONSTRUCTOR,
    CursorKind.DESTRUCTOR,
    CursorKind.CONVERSION_FUNCTION,
    CursorKind.FUNCTION_TEMPLATE,
}

_CONTAINER_KINDS = {
    CursorKind.TRANSLATION_UNIT,
    CursorKind.NAMESPACE,
    CursorKind.CLASS_DECL,
    CursorKind.STRUCT_DECL,
    CursorKind.UNION_DECL,
    CursorKind.CLASS_TEMPLATE,
    CursorKind.LINKAGE_SPEC,
    CursorKind.UNEXPOSED_DECL,
}

# Implicit conversions and temporaries show up as UNEXPOSED_EXPR wrappers.
_TRANSPARENT_KINDS = {CursorKind.UNEXPOSED_EXPR}

_LITERAL_KINDS = {
    CursorKind.INTEGER_LITERAL,
    CursorKind.FLOATING_LITERAL,
    CursorKind.IMAGINARY_LITERAL,
    CursorKind.STRING_LITERAL,
    CursorKind.CHARACTER_LITERAL,
    CursorKind.CXX_BOOL_LITERAL_EXPR,
}
_NULLPTR_KIND = getattr(CursorKind, "CXX_NULL_PTR_LITERAL_EXPR", None)
if _NULLPTR_KIND is not None:
    _LITERAL_KINDS.add(_NULLPTR_KIND)

_COMPARISON_OPS = {"==", "!=", "<", ">", "<=", ">=", "<=>"}
_BINARY_OPS = _COMPARISON_OPS | {
    "=", "&&", "||", ",", "+", "-", "*", "/", "%", "<<", ">>", "&", "|", "^", ".*", "->*",
}
_COMPOUND_OPS = {"+=", "-=", "*=", "/=", "%=", "&=", "|=", "^=", "<<=", ">>="}
_UNARY_OPS = {"!", "*", "&", "-", "+", "~", "++", "--", "__extension__", "__real__", "__imag__"}


def _tokens(cursor):
    return [t.spelling for t in cursor.get_tokens()]


def _expr_children(cursor):
    return [c for c in cursor.get_children() if c.kind.is_expression()]


def _binary_operator(cursor, left, right, operators):
    tokens = _tokens(cursor)
    if not tokens:
        return None

    left_tokens = _tokens(left)
    right_tokens = _tokens(right)

    middle = list(tokens)
    if left_tokens and middle[: len(left_tokens)] == left_tokens:
        middle = middle[len(left_tokens):]
    if right_tokens and len(middle) >= len(right_tokens) and middle[-len(right_tokens):] == right_tokens:
        middle = middle[: -len(right_tokens)]

    for tok in middle:
        if tok in operators:
            return tok
    return None


def _unary_operator(cursor, operand):
    tokens = _tokens(cursor)
    operand_tokens = _tokens(operand)
    if not tokens:
        return None

    if operand_tokens and len(tokens) > len(operand_tokens):
        if tokens[-len(operand_tokens):] == operand_tokens:
            prefix = tokens[: -len(operand_tokens)]
            if prefix and prefix[-1] in _UNARY_OPS:
                return prefix[-1]
        if tokens[: len(operand_tokens)] == operand_tokens:
            suffix = tokens[len(operand_tokens):]
            if suffix and suffix[0] in _UNARY_OPS:
                return suffix[0]

    if tokens[0] in _UNARY_OPS:
        return tokens[0]
    if tokens[-1] in {"++", "--"}:
        return tokens[-1]
    return None


def _for_header_clauses(cursor):
    """
    Which of init/condition/update are present in a for-header, found by
    splitting the header tokens on top-level semicolons.
    """
    tokens = _tokens(cursor)
    try:
        lpar = tokens.index("(")
    except ValueError:
        return None

    depth = 0
    clauses = [[]]
    for tok in tokens[lpar + 1:]:
        if tok in ("(", "[", "{"):
            depth += 1
        elif tok in (")", "]", "}"):
            if depth == 0:
                break
            depth -= 1
        elif tok == ";" and depth == 0:
            clauses.append([])
            continue
        clauses[-1].append(tok)
    else:
        return None

    if len(clauses) != 3:
        return None
    return tuple(bool(clause) for clause in clauses)


def _macro_arguments(tokens):
    """Top-level argument token lists of `NAME ( ... )`, or None."""
    if len(tokens) < 3 or tokens[1] != "(":
        return None

    depth = 0
    args = [[]]
    for tok in tokens[2:]:
        if tok in ("(", "[", "{"):
            depth += 1
        elif tok in (")", "]", "}"):
            if depth == 0:
                return args
            depth -= 1
        elif tok == "," and depth == 0:
            args.append([])
            continue
        args[-1].append(tok)
    return None


def _wrapping_parens(tokens):
    """Number of paren pairs that enclose the whole token list."""
    depth = 0
    while len(tokens) >= 2 and tokens[0] == "(" and tokens[-1] == ")":
        level = 0
        for i, tok in enumerate(tokens):
            if tok == "(":
                level += 1
            elif tok == ")":
                level -= 1
                if level == 0 and i != len(tokens) - 1:
                    return depth
        tokens = tokens[1:-1]
        depth += 1
    return depth


def _assertion_expansions(tu_cursor, names, target_file, realpath_cache):
    """
    Single-argument expansions of the named macros in the target file,
    keyed by the (line, column) of the macro name. Each value is the macro
    name, the paren pairs the author wrote around the argument, and the
    argument's tokens.
    """
    expansions = {}
    for child in tu_cursor.get_children():
        if child.kind != CursorKind.MACRO_INSTANTIATION or child.spelling not in names:
            continue
        if not _in_target_file(child, target_file, realpath_cache):
            continue
        args = _macro_arguments(_tokens(child))
        if args is None or len(args) != 1 or not args[0]:
            continue
        loc = child.location
        expansions[(loc.line, loc.column)] = (child.spelling, _wrapping_parens(args[0]), args[0])
    return expansions


def _is_slice_of(tokens, within):
    size = len(tokens)
    return any(within[i:i + size] == tokens for i in range(len(within) - size + 1))


def _decl_key(cursor):
    usr = cursor.get_usr()
    if usr:
        return usr
    loc = cursor.location
    return (loc.file.name if loc.file else None, loc.line, loc.column, cursor.spelling)


def _initializer_follows(rest):
    """
    Whether the tokens after a declarator's name start an initializer: a
    '(' right after the name, or '=' / '{' outside any declarator parens
    or brackets, e.g. `int (*fp)() = f` or `int x [[maybe_unused]] = 1`.
    """
    if rest and rest[0] == "(":
        return True

    depth = 0
    for tok in rest:
        if tok in ("(", "["):
            depth += 1
        elif tok in (")", "]"):
            # Unmatched closers end parens opened before the name.
            if depth > 0:
                depth -= 1
        elif depth == 0:
            if tok in ("=", "{"):
                return True
            if tok in (",", ";"):
                return False
    return False


def _has_initializer(cursor):
    tokens = list(cursor.get_tokens())
    if not tokens:
        return False

    loc = cursor.location
    name_idx = None
    for i, tok in enumerate(tokens):
        if tok.location.line == loc.line and tok.location.column == loc.column:
            name_idx = i
            break
    if name_idx is None:
        spellings = [t.spelling for t in tokens]
        if cursor.spelling not in spellings:
            return False
        name_idx = spellings.index(cursor.spelling)

    return _initializer_follows([t.spelling for t in tokens[name_idx + 1:]])


def _is_function_scope(cursor):
    parent = cursor.semantic_parent
    return parent is not None and parent.kind in _FUNCTION_KINDS


class _FunctionConverter:
    """
    Converts one function definition cursor into a FunctionBody, resolving
    every variable reference to a single shared Variable per declaration.
    """

    def __init__(self, cursor, assertion_expansions=None):
        self.cursor = cursor
        self.by_key = {}
        self.parameters = []
        self.variables = []
        self.assertion_expansions = assertion_expansions or {}
        self.expanded = set()

    def convert(self):
        cursor = self.cursor
        body_cursor = None
        for child in cursor.get_children():
            if child.kind == CursorKind.PARM_DECL:
                self.parameters.append(self._register(child, StorageKind.PARAMETER, True))
            elif child.kind in (CursorKind.COMPOUND_STMT, CursorKind.CXX_TRY_STMT):
                body_cursor = child

        if body_cursor is None:
            return None

        body = self._stmt(body_cursor)
        return FunctionBody(
            cursor.spelling,
            body,
            parameters=self.parameters,
            variables=self.variables,
            line=cursor.location.line,
        )

    # -- variables ---------------------------------------------------------

    def _register(self, cursor, storage_kind, has_initializer):
        variable = Variable(cursor.spelling, storage_kind, cursor.location.line, has_initializer)
        self.by_key[_decl_key(cursor)] = variable
        if storage_kind in (StorageKind.LOCAL, StorageKind.STATIC_LOCAL):
            self.variables.append(variable)
        return variable

    def _variable_for(self, decl):
        key = _decl_key(decl)
        variable = self.by_key.get(key)
        if variable is not None:
            return variable

        if decl.kind == CursorKind.PARM_DECL:
            # A parameter of some other function, e.g. inside a nested declaration.
            variable = Variable(decl.spelling, StorageKind.PARAMETER, decl.location.line, True)
        elif decl.kind == CursorKind.VAR_DECL:
            if _is_function_scope(decl) and decl.storage_class != StorageClass.EXTERN:
                storage = StorageKind.STATIC_LOCAL if decl.storage_class == StorageClass.STATIC else StorageKind.LOCAL
            else:
                storage = StorageKind.GLOBAL
            variable = Variable(decl.spelling, storage, decl.location.line, _has_initializer(decl))
        else:
            return None

        self.by_key[key] = variable
        return variable

    # -- statements --------------------------------------------------------

    def _line(self, cursor):
        return cursor.location.line

    def _decl(self, cursor):
        storage_class = cursor.storage_class
        if storage_class == StorageClass.EXTERN:
            storage = StorageKind.GLOBAL
        elif storage_class == StorageClass.STATIC:
            storage = StorageKind.STATIC_LOCAL
        else:
            storage = StorageKind.LOCAL

        has_init = _has_initializer(cursor)
        variable = self._register(cursor, storage, has_init)

        init = None
        if has_init:
            exprs = _expr_children(cursor)
            if exprs:
                init = self._expr(exprs[-1])
        return Stmt(StmtKind.DECL, line=self._line(cursor), variable=variable, expr=init)

    def _leading_decls(self, children, keep):
        decls = []
        while len(children) > keep and children[0].kind in (CursorKind.DECL_STMT, CursorKind.VAR_DECL):
            decls.append(self._stmt(children.pop(0)))
        return decls

    def _wrap(self, decls, stmt):
        if not decls:
            return stmt
        return Stmt(StmtKind.BLOCK, line=stmt.line, stmts=decls + [stmt])

    def _stmt(self, cursor):
        kind = cursor.kind
        line = self._line(cursor)
        children = list(cursor.get_children())

        if kind == CursorKind.COMPOUND_STMT:
            return Stmt(StmtKind.BLOCK, line=line, stmts=[self._stmt(c) for c in children])

        if kind == CursorKind.DECL_STMT:
            decls = [self._decl(c) for c in children if c.kind == CursorKind.VAR_DECL]
            return Stmt(StmtKind.BLOCK, line=line, stmts=decls)

        if kind == CursorKind.VAR_DECL:
            return self._decl(cursor)

        if kind == CursorKind.IF_STMT:
            decls = self._leading_decls(children, 2)
            if len(children) < 2:
                return Stmt(StmtKind.OTHER, line=line)
            orelse = self._stmt(children[2]) if len(children) > 2 else None
            stmt = Stmt(
                StmtKind.IF,
                line=line,
                cond=self._expr(children[0]),
                body=self._stmt(children[1]),
                orelse=orelse,
            )
            return self._wrap(decls, stmt)

        if kind == CursorKind.WHILE_STMT:
            decls = self._leading_decls(children, 2)
            if len(children) < 2:
                return Stmt(StmtKind.OTHER, line=line)
            stmt = Stmt(StmtKind.WHILE, line=line, cond=self._expr(children[-2]), body=self._stmt(children[-1]))
            return self._wrap(decls, stmt)

        if kind == CursorKind.DO_STMT:
            if len(children) < 2:
                return Stmt(StmtKind.OTHER, line=line)
            return Stmt(StmtKind.DO_WHILE, line=line, body=self._stmt(children[0]), cond=self._expr(children[1]))

        if kind == CursorKind.FOR_STMT:
            return self._for(cursor, children, line)

        if kind == CursorKind.CXX_FOR_RANGE_STMT:
            loop_vars = [c for c in children if c.kind == CursorKind.VAR_DECL]
            variable = self._register(loop_vars[0], StorageKind.LOCAL, True) if loop_vars else None
            exprs = [c for c in children[:-1] if c.kind.is_expression()]
            return Stmt(
                StmtKind.RANGE_FOR,
                line=line,
                variable=variable,
                expr=self._expr(exprs[-1]) if exprs else None,
                body=self._stmt(children[-1]) if children else None,
            )

        if kind == CursorKind.SWITCH_STMT:
            decls = self._leading_decls(children, 2)
            if len(children) < 2:
                return Stmt(StmtKind.OTHER, line=line)
            stmt = Stmt(StmtKind.SWITCH, line=line, cond=self._expr(children[-2]), body=self._stmt(children[-1]))
            return self._wrap(decls, stmt)

        if kind == CursorKind.CASE_STMT:
            body = self._stmt(children[-1]) if len(children) > 1 else None
            value = self._expr(children[0]) if children else None
            return Stmt(StmtKind.CASE, line=line, expr=value, body=body)

        if kind == CursorKind.DEFAULT_STMT:
            return Stmt(StmtKind.DEFAULT, line=line, body=self._stmt(children[-1]) if children else None)

        if kind == CursorKind.RETURN_STMT:
            return Stmt(StmtKind.RETURN, line=line, expr=self._expr(children[0]) if children else None)

        if kind == CursorKind.BREAK_STMT:
            return Stmt(StmtKind.BREAK, line=line)

        if kind == CursorKind.CONTINUE_STMT:
            return Stmt(StmtKind.CONTINUE, line=line)

        if kind == CursorKind.GOTO_STMT:
            label = None
            for child in children:
                if child.kind == CursorKind.LABEL_REF:
                    label = child.spelling
            if label is None:
                tokens = _tokens(cursor)
                label = tokens[1] if len(tokens) > 1 else None
            return Stmt(StmtKind.GOTO, line=line, label=label)

        if kind == CursorKind.LABEL_STMT:
            body = self._stmt(children[-1]) if children else None
            return Stmt(StmtKind.LABEL, line=line, label=cursor.spelling, body=body)

        if kind == CursorKind.CXX_TRY_STMT:
            blocks = [c for c in children if c.kind != CursorKind.CXX_CATCH_STMT]
            handlers = [c for c in children if c.kind == CursorKind.CXX_CATCH_STMT]
            return Stmt(
                StmtKind.TRY,
                line=line,
                stmts=[self._stmt(c) for c in blocks],
                handlers=[self._catch(c) for c in handlers],
            )

        if kind == CursorKind.NULL_STMT:
            return Stmt(StmtKind.BLOCK, line=line)

        if kind.is_expression():
            return Stmt(StmtKind.EXPR, line=line, expr=self._expr(cursor))

        if kind.is_declaration():
            # Local classes, typedefs and the like carry no runtime effect here.
            return Stmt(StmtKind.OTHER, line=line)

        logger.debug("unhandled statement kind %s on line %s", kind, line)
        return Stmt(StmtKind.BLOCK, line=line, stmts=[self._stmt(c) for c in children])

    def _for(self, cursor, children, line):
        if not children:
            return Stmt(StmtKind.OTHER, line=line)

        body = self._stmt(children[-1])
        parts = children[:-1]
        present = _for_header_clauses(cursor)
        if present is None or sum(present) != len(parts):
            # Fall back to filling clauses in order.
            present = tuple(i < len(parts) for i in range(3))

        slots = [None, None, None]
        remaining = list(parts)
        for i, has_clause in enumerate(present):
            if has_clause and remaining:
                slots[i] = remaining.pop(0)

        init_cursor, cond_cursor, update_cursor = slots
        init = None
        if init_cursor is not None:
            init = self._stmt(init_cursor)
        return Stmt(
            StmtKind.FOR,
            line=line,
            init=init,
            cond=self._expr(cond_cursor) if cond_cursor is not None else None,
            update=self._expr(update_cursor) if update_cursor is not None else None,
            body=body,
        )

    def _catch(self, cursor):
        stmts = []
        for child in cursor.get_children():
            if child.kind == CursorKind.VAR_DECL:
                variable = self._register(child, StorageKind.LOCAL, True)
                stmts.append(Stmt(StmtKind.DECL, line=self._line(child), variable=variable))
            else:
                stmts.append(self._stmt(child))
        return Stmt(StmtKind.BLOCK, line=self._line(cursor), stmts=stmts)

    # -- expressions -------------------------------------------------------

    def _make(self, cursor, kind, operands=(), **fields):
        loc = cursor.location
        return Expr(kind, operands, line=loc.line, column=loc.column, **fields)

    def _expr(self, cursor):
        kind = cursor.kind
        children = _expr_children(cursor)

        if kind == CursorKind.PAREN_EXPR and len(children) == 1:
            inner = self._expr(children[0])
            inner.paren_depth += 1
            return inner

        if kind in _TRANSPARENT_KINDS and len(children) == 1:
            return self._expr(children[0])

        if kind == CursorKind.BINARY_OPERATOR and len(children) == 2:
            left, right = children
            op = _binary_operator(cursor, left, right, _BINARY_OPS)
            if op == "=":
                expr_kind = ExprKind.ASSIGNMENT
            elif op == "&&":
                expr_kind = ExprKind.LOGICAL_AND
            elif op == "||":
                expr_kind = ExprKind.LOGICAL_OR
            elif op in _COMPARISON_OPS:
                expr_kind = ExprKind.COMPARISON
            else:
                expr_kind = ExprKind.OTHER
            return self._make(cursor, expr_kind, [self._expr(left), self._expr(right)], op=op)

        if kind == CursorKind.COMPOUND_ASSIGNMENT_OPERATOR and len(children) == 2:
            left, right = children
            op = _binary_operator(cursor, left, right, _COMPOUND_OPS)
            return self._make(cursor, ExprKind.COMPOUND_ASSIGNMENT, [self._expr(left), self._expr(right)], op=op)

        if kind == CursorKind.UNARY_OPERATOR and len(children) == 1:
            operand = children[0]
            op = _unary_operator(cursor, operand)
            if op == "!":
                expr_kind = ExprKind.NOT
            elif op == "*":
                expr_kind = ExprKind.DEREFERENCE
            elif op in ("++", "--"):
                expr_kind = ExprKind.INCREMENT
            else:
                expr_kind = ExprKind.OTHER
            return self._make(cursor, expr_kind, [self._expr(operand)], op=op)

        if kind == CursorKind.CONDITIONAL_OPERATOR and len(children) == 3:
            expansion = self._assertion_expansion(cursor)
            if expansion is not None:
                return self._assertion_call(cursor, children[0], expansion)
            return self._make(cursor, ExprKind.TERNARY, [self._expr(c) for c in children])

        if kind == CursorKind.CALL_EXPR:
            args = [self._expr(a) for a in cursor.get_arguments()]
            return self._make(cursor, ExprKind.CALL, args, name=cursor.spelling)

        if kind == CursorKind.DECL_REF_EXPR:
            decl = cursor.referenced
            variable = self._variable_for(decl) if decl is not None else None
            if variable is None:
                return self._make(cursor, ExprKind.OTHER, name=cursor.spelling)
            return self._make(cursor, ExprKind.IDENTIFIER, name=cursor.spelling, variable=variable)

        if kind == CursorKind.MEMBER_REF_EXPR:
            op = "->" if "->" in _tokens(cursor) else "."
            return self._make(
                cursor, ExprKind.MEMBER, [self._expr(c) for c in children], name=cursor.spelling, op=op
            )

        if kind == CursorKind.ARRAY_SUBSCRIPT_EXPR:
            return self._make(cursor, ExprKind.SUBSCRIPT, [self._expr(c) for c in children])

        if kind in _LITERAL_KINDS:
            return self._make(cursor, ExprKind.LITERAL)

        if kind == CursorKind.LAMBDA_EXPR:
            # The lambda body is a different function.
            return self._make(cursor, ExprKind.OTHER)

        return self._make(cursor, ExprKind.OTHER, [self._expr(c) for c in children])

    def _assertion_expansion(self, cursor):
        # Code expanded from a macro body reports the macro name's location.
        loc = cursor.location
        key = (loc.line, loc.column)
        expansion = self.assertion_expansions.get(key)
        if expansion is None or key in self.expanded:
            return None

        # A ternary the author wrote inside the argument is not the macro's own.
        tokens = _tokens(cursor)
        if tokens and _is_slice_of(tokens, expansion[2]):
            return None

        self.expanded.add(key)
        return expansion

    def _assertion_call(self, cursor, condition, expansion):
        """
        An assertion macro expanding to `static_cast<bool>(e) ? void(0) : fail()`
        (or `(e) ? ... : ...` in C) becomes a call of the macro on e, so its
        argument is judged like the argument of an assertion function.
        """
        name, author_parens, _argument_tokens = expansion
        while condition.kind in _TRANSPARENT_KINDS or condition.kind == CursorKind.CXX_STATIC_CAST_EXPR:
            inner = _expr_children(condition)
            if len(inner) != 1:
                break
            condition = inner[0]

        argument = self._expr(condition)
        # Parens from the macro body are not the author's.
        argument.paren_depth = author_parens
        return self._make(cursor, ExprKind.CALL, [argument], name=name)


def _in_target_file(cursor, target_file, realpath_cache):
    if not target_file:
        return True
    cursor_file = cursor.location.file.name if cursor.location.file else None
    if not cursor_file:
        return True
    cached = realpath_cache.get(cursor_file)
    if cached is None:
        cached = os.path.realpath(cursor_file)
        realpath_cache[cursor_file] = cached
    return cached == target_file


def _collect(cursor, target_file, expansions, realpath_cache):
    functions = []
    for child in cursor.get_children():
        if not _in_target_file(child, target_file, realpath_cache):
            continue

        if child.kind in _FUNCTION_KINDS:
            if not child.is_definition():
                continue
            function = _FunctionConverter(child, expansions).convert()
            if function is not None:
                logger.debug("collected function '%s' on line %s", function.name, function.line)
                functions.append(function)
        elif child.kind in _CONTAINER_KINDS:
            functions.extend(_collect(child, target_file, expansions, realpath_cache))

    return functions


def collect_functions(cursor, target_file=None, assertion_macros=None):
    """
    Convert every function definition under cursor (normally the
    translation unit) into a FunctionBody, skipping code from other files.
    Expansions of assertion_macros (default: the usual assertion names)
    become calls of the macro on its argument.
    """
    realpath_cache = {}
    names = set(DEFAULT_ASSERTION_NAMES if assertion_macros is None else assertion_macros)
    tu_cursor = cursor.translation_unit.cursor if cursor.translation_unit else cursor
    expansions = _assertion_expansions(tu_cursor, names, target_file, realpath_cache) if names else {}
    return _collect(cursor, target_file, expansions, realpath_cache)
