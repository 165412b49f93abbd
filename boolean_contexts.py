import enum

from ast_model import ExprKind, StmtKind


class ContextKind(enum.Enum):
    IF_CONDITION = "if-condition"
    WHILE_CONDITION = "while-condition"
    DO_WHILE_CONDITION = "do-while-condition"
    FOR_CONDITION = "for-condition"
    TERNARY_CONDITION = "ternary-condition"
    LOGICAL_OPERAND = "logical-operand"
    CALL_ARGUMENT = "call-argument"


# Positions whose grammar wraps them, and only them, in one pair of parens.
MANDATORY_DELIMITER_KINDS = {
    ContextKind.IF_CONDITION,
    ContextKind.WHILE_CONDITION,
    ContextKind.DO_WHILE_CONDITION,
    ContextKind.CALL_ARGUMENT,
}

_STATEMENT_CONTEXTS = {
    StmtKind.IF: ContextKind.IF_CONDITION,
    StmtKind.WHILE: ContextKind.WHILE_CONDITION,
    StmtKind.DO_WHILE: ContextKind.DO_WHILE_CONDITION,
    StmtKind.FOR: ContextKind.FOR_CONDITION,
}

DEFAULT_ASSERTION_NAMES = ("assert", "ASSERT", "check", "CHECK", "verify", "VERIFY", "DCHECK")


class BooleanContext:
    """
    A position whose value is read as a truth value. expr is borrowed from
    the function's tree; the context never owns it.
    """

    def __init__(self, kind, expr, owner=None):
        self.kind = kind
        self.expr = expr
        self.owner = owner

    @property
    def has_own_mandatory_delimiter(self):
        return self.kind in MANDATORY_DELIMITER_KINDS

    @property
    def line(self):
        return self.expr.line

    def __repr__(self):
        return f"BooleanContext({self.kind.value}, line={self.line})"


def assertion_call_predicate(names=None):
    """
    Build the predicate that recognises assertion-style calls: a call with
    exactly one argument whose callee name is in names.
    """
    accepted = frozenset(DEFAULT_ASSERTION_NAMES if names is None else names)

    def is_assertion_call(expr):
        if expr.kind != ExprKind.CALL:
            return False
        if len(expr.operands) != 1:
            return False
        return (expr.name or "") in accepted

    is_assertion_call.names = accepted
    return is_assertion_call


class BooleanContextClassifier:
    def __init__(self, is_assertion_call=None):
        self.is_assertion_call = is_assertion_call or assertion_call_predicate()

    def contexts(self, function):
        """Every boolean context introduced by a function body, in source order."""
        found = []
        self._visit_stmt(function.body, found)

        def position(item):
            index, context = item
            line = context.line if isinstance(context.line, int) else 10**9
            column = context.expr.column if isinstance(context.expr.column, int) else 0
            return (line, column, index)

        return [context for _, context in sorted(enumerate(found), key=position)]

    def _add(self, kind, expr, owner, found):
        context = BooleanContext(kind, expr, owner)
        found.append(context)

        # A logical operator governing a context hands its truth value to each operand.
        if expr.kind in (ExprKind.LOGICAL_AND, ExprKind.LOGICAL_OR):
            for operand in expr.operands:
                self._add(ContextKind.LOGICAL_OPERAND, operand, expr, found)

    def _visit_stmt(self, stmt, found):
        if stmt is None:
            return

        kind = _STATEMENT_CONTEXTS.get(stmt.kind)
        if kind is not None and stmt.cond is not None:
            self._add(kind, stmt.cond, stmt, found)

        for expr in stmt.expressions():
            self._visit_expr(expr, found)

        for child in stmt.children():
            self._visit_stmt(child, found)

    def _visit_expr(self, expr, found):
        for node in expr.walk():
            if node.kind == ExprKind.TERNARY and node.operands:
                self._add(ContextKind.TERNARY_CONDITION, node.operands[0], node, found)
            elif node.kind == ExprKind.CALL and self.is_assertion_call(node):
                self._add(ContextKind.CALL_ARGUMENT, node.operands[0], node, found)
