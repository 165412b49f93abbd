import logging

from ast_model import Alert, ExprKind, FunctionBody
from base_rule import BaseRule
from boolean_contexts import BooleanContextClassifier
from bracket_depth import BracketDepthAnalyzer
from control_flow_graph import function_cfg
from initialization_analysis import DefiniteAssignmentAnalysis
from storage_kind import ALWAYS_FLAGGED, classify_target, target_variable

logger = logging.getLogger(__name__)


def _describe_target(expr):
    if expr is None:
        return "value"
    kind = expr.kind
    if kind == ExprKind.IDENTIFIER:
        return expr.name or (expr.variable.name if expr.variable else "value")
    if kind == ExprKind.DEREFERENCE and expr.operands:
        return "*" + _describe_target(expr.operands[0])
    if kind == ExprKind.SUBSCRIPT and expr.operands:
        return _describe_target(expr.operands[0]) + "[...]"
    if kind == ExprKind.MEMBER:
        if expr.operands:
            return f"{_describe_target(expr.operands[0])}{expr.op or '.'}{expr.name or ''}"
        return expr.name or "member"
    return expr.name or "value"


class AssignmentInConditionRule(BaseRule):
    """
    Warns when '=' is used where '==' was almost certainly meant: in an
    if/while/do-while/for condition, a ternary condition, an operand of
    && or || inside such a condition, or the argument of an assertion call.

    Assignments wrapped in extra parentheses are taken as intentional, as is
    the first assignment to a local that is still uninitialized on some path.
    """

    def __init__(self, classifier=None):
        self.classifier = classifier or BooleanContextClassifier()
        self.brackets = BracketDepthAnalyzer()

    def matches(self, function):
        return isinstance(function, FunctionBody) and function.body is not None

    def apply(self, function):
        alerts = []
        seen = set()
        cfg = function_cfg(function)
        initialization = None

        for context in self.classifier.contexts(function):
            candidate = self.brackets.candidate(context)
            if candidate is None:
                continue

            assignment = candidate.assignment
            if id(assignment) in seen:
                continue
            seen.add(id(assignment))

            if self.brackets.suppresses(candidate):
                continue

            storage = classify_target(assignment, function)
            if storage is None:
                continue

            if storage not in ALWAYS_FLAGGED:
                if initialization is None:
                    initialization = DefiniteAssignmentAnalysis(function, cfg)
                    initialization.run()
                variable = target_variable(assignment)
                if initialization.possibly_first_use(assignment, variable):
                    logger.debug(
                        "'%s' may be uninitialized before line %s: treating as assign-and-test",
                        variable.name,
                        assignment.line,
                    )
                    continue

            alerts.append(self._alert(candidate, storage))

        return alerts

    def _alert(self, candidate, storage):
        assignment = candidate.assignment
        target = _describe_target(assignment.target)
        line = assignment.line
        where = f" on line {line}" if line else ""
        message = (
            f"Using the result of an assignment to '{target}' as a condition{where}. "
            "Did you mean '=='?"
        )
        return Alert(
            line,
            assignment.column,
            message,
            target=target,
            context_kind=candidate.context.kind,
            storage_kind=storage,
        )
