import enum


class InvalidInputError(ValueError):
    """Raised when a function body or its control-flow graph is inconsistent."""


class ExprKind(enum.Enum):
    ASSIGNMENT = "assignment"
    COMPOUND_ASSIGNMENT = "compound-assignment"
    COMPARISON = "comparison"
    LOGICAL_AND = "logical-and"
    LOGICAL_OR = "logical-or"
    NOT = "not"
    TERNARY = "ternary"
    CALL = "call"
    IDENTIFIER = "identifier"
    DEREFERENCE = "dereference"
    MEMBER = "member"
    SUBSCRIPT = "subscript"
    INCREMENT = "increment"
    LITERAL = "literal"
    OTHER = "other"


class StmtKind(enum.Enum):
    BLOCK = "block"
    EXPR = "expr"
    DECL = "decl"
    IF = "if"
    WHILE = "while"
    DO_WHILE = "do-while"
    FOR = "for"
    RANGE_FOR = "range-for"
    SWITCH = "switch"
    CASE = "case"
    DEFAULT = "default"
    RETURN = "return"
    BREAK = "break"
    CONTINUE = "continue"
    GOTO = "goto"
    LABEL = "label"
    TRY = "try"
    OTHER = "other"


class StorageKind(enum.Enum):
    LOCAL = "local"
    PARAMETER = "parameter"
    GLOBAL = "global"
    STATIC_LOCAL = "static"
    MEMBER = "member"
    DEREFERENCED = "dereferenced"


# Locals and parameters are the only variables whose initialization is tracked.
TRACKED_STORAGE = {StorageKind.LOCAL, StorageKind.PARAMETER}


class Variable:
    """
    A resolved declaration. Identity is object identity: the front-end
    hands out one Variable per declaration and every reference shares it.
    """

    def __init__(self, name, storage_kind, decl_line=None, has_initializer=False):
        self.name = name
        self.storage_kind = storage_kind
        self.decl_line = decl_line
        self.has_initializer = has_initializer

    @property
    def is_tracked(self):
        return self.storage_kind in TRACKED_STORAGE

    def __repr__(self):
        return f"Variable({self.name!r}, {self.storage_kind.value})"


class Expr:
    """
    Expression node. paren_depth counts the parenthesis pairs the author
    wrote directly around this node; delimiters required by the grammar
    (the parens of if/while/for headers or of a call) are never counted.
    """

    def __init__(
        self,
        kind,
        operands=None,
        *,
        paren_depth=0,
        line=None,
        column=None,
        name=None,
        op=None,
        variable=None,
    ):
        self.kind = kind
        self.operands = list(operands or [])
        self.paren_depth = paren_depth
        self.line = line
        self.column = column
        self.name = name
        self.op = op
        self.variable = variable

    @property
    def is_plain_assignment(self):
        return self.kind == ExprKind.ASSIGNMENT

    @property
    def target(self):
        if self.kind in (ExprKind.ASSIGNMENT, ExprKind.COMPOUND_ASSIGNMENT, ExprKind.INCREMENT):
            return self.operands[0] if self.operands else None
        return None

    def walk(self):
        """Yield this node and every descendant, parents first."""
        yield self
        for operand in self.operands:
            yield from operand.walk()

    def __repr__(self):
        label = self.op or self.name or ""
        return f"Expr({self.kind.value} {label!s} line={self.line} parens={self.paren_depth})"


class Stmt:
    """
    Statement node. Only the fields relevant to the kind are set:

    BLOCK/TRY: stmts (TRY also handlers), EXPR/RETURN: expr,
    DECL: variable + expr (initializer), IF: cond/body/orelse,
    WHILE/DO_WHILE: cond/body, FOR: init/cond/update/body,
    RANGE_FOR: variable/expr/body, SWITCH: cond/body,
    CASE: expr/body, DEFAULT: body, GOTO/LABEL: label (LABEL also body).
    """

    def __init__(
        self,
        kind,
        *,
        line=None,
        expr=None,
        cond=None,
        init=None,
        update=None,
        body=None,
        orelse=None,
        stmts=None,
        variable=None,
        label=None,
        handlers=None,
    ):
        self.kind = kind
        self.line = line
        self.expr = expr
        self.cond = cond
        self.init = init
        self.update = update
        self.body = body
        self.orelse = orelse
        self.stmts = list(stmts or [])
        self.variable = variable
        self.label = label
        self.handlers = list(handlers or [])

    def expressions(self):
        """Top-level expressions owned directly by this statement."""
        return [e for e in (self.expr, self.cond, self.update) if e is not None]

    def children(self):
        """Nested statements in source order."""
        out = []
        if self.init is not None:
            out.append(self.init)
        out.extend(self.stmts)
        if self.body is not None:
            out.append(self.body)
        if self.orelse is not None:
            out.append(self.orelse)
        out.extend(self.handlers)
        return out

    def __repr__(self):
        return f"Stmt({self.kind.value} line={self.line})"


class FunctionBody:
    """
    One function definition as seen by the engine: its parameters, the
    statement tree, and every variable the front-end resolved as declared
    inside it. A front-end may attach a pre-built control-flow graph.
    """

    def __init__(self, name, body, parameters=None, variables=None, line=None, cfg=None):
        self.name = name
        self.body = body
        self.parameters = list(parameters or [])
        self.variables = list(variables or [])
        self.line = line
        self.cfg = cfg

    def declares(self, variable):
        return any(variable is v for v in self.parameters) or any(variable is v for v in self.variables)

    def __repr__(self):
        return f"FunctionBody({self.name!r}, line={self.line})"


class Alert:
    def __init__(self, line, column, message, target=None, context_kind=None, storage_kind=None):
        self.line = line
        self.column = column
        self.message = message
        self.target = target
        self.context_kind = context_kind
        self.storage_kind = storage_kind

    def to_dict(self):
        return {
            "line": self.line,
            "column": self.column,
            "message": self.message,
            "target": self.target,
            "context": self.context_kind.value if self.context_kind else None,
            "storage": self.storage_kind.value if self.storage_kind else None,
        }

    def __eq__(self, other):
        if not isinstance(other, Alert):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self):
        return hash((self.line, self.column, self.message))

    def __str__(self):
        return f"[WARN] {self.message}"

    def __repr__(self):
        return f"Alert(line={self.line}, column={self.column}, target={self.target!r})"
