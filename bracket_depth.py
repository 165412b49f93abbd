import logging

from ast_model import ExprKind

logger = logging.getLogger(__name__)


class Candidate:
    """A plain assignment sitting at a boolean position, possibly under one '!'."""

    def __init__(self, assignment, context, negated=False):
        self.assignment = assignment
        self.context = context
        self.negated = negated

    def __repr__(self):
        return f"Candidate({self.assignment!r}, {self.context.kind.value}, negated={self.negated})"


class BracketDepthAnalyzer:
    """
    Decides whether an assignment in a boolean context is wrapped in enough
    author-written parentheses to count as deliberate.
    """

    def candidate(self, context):
        expr = context.expr
        if expr.is_plain_assignment:
            return Candidate(expr, context)

        if expr.kind == ExprKind.NOT and len(expr.operands) == 1:
            inner = expr.operands[0]
            if inner.is_plain_assignment:
                return Candidate(inner, context, negated=True)

        return None

    def required_depth(self, candidate):
        # The parens after '!' belong to the operator, not to the context.
        if candidate.negated:
            return 2
        return 1 if candidate.context.has_own_mandatory_delimiter else 2

    def suppresses(self, candidate):
        required = self.required_depth(candidate)
        depth = candidate.assignment.paren_depth
        if depth >= required:
            logger.debug(
                "assignment on line %s bracketed %d time(s) in %s, needs %d: suppressed",
                candidate.assignment.line,
                depth,
                candidate.context.kind.value,
                required,
            )
            return True
        return False
