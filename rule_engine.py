import logging

from ast_model import InvalidInputError

logger = logging.getLogger(__name__)


class FunctionError:
    """A function body a rule could not analyze, and why."""

    def __init__(self, function, rule, error):
        self.function = function
        self.rule = rule
        self.error = error

    @property
    def line(self):
        return self.function.line

    @property
    def message(self):
        return f"function '{self.function.name}': {self.error}"

    def __repr__(self):
        return f"FunctionError({self.function.name!r}, line={self.line})"


class RuleEngine:
    """
    Applies a collection of rules to the function bodies of one file
    and collects their alerts in source order. A function a rule rejects
    as invalid is recorded in `errors` and does not affect the others.
    """

    def __init__(self, rules):
        self.rules = rules
        self.errors = []

    def run(self, functions):
        alerts = []
        self.errors = []

        for function in functions:
            for rule in self.rules:
                if not rule.matches(function):
                    continue
                try:
                    alerts.extend(rule.apply(function) or [])
                except InvalidInputError as exc:
                    logger.warning("skipping '%s': %s", getattr(function, "name", function), exc)
                    self.errors.append(FunctionError(function, rule, exc))

        for rule in self.rules:
            alerts.extend(rule.finalize() or [])

        def position(item):
            index, alert = item
            line = alert.line if isinstance(alert.line, int) else 10**9
            column = alert.column if isinstance(alert.column, int) else 0
            return (line, column, index)

        return [alert for _, alert in sorted(enumerate(alerts), key=position)]
