from rule_engine import RuleEngine

from assignment_in_condition_rule import AssignmentInConditionRule
from boolean_contexts import BooleanContextClassifier, DEFAULT_ASSERTION_NAMES, assertion_call_predicate


def parse_assertion_names(raw):
    """Split a comma-separated --assert-names value; None keeps the defaults."""
    if raw is None:
        return None
    return [name.strip() for name in raw.split(",") if name.strip()]


def build_engine(assertion_names=None):
    names = DEFAULT_ASSERTION_NAMES if assertion_names is None else assertion_names
    classifier = BooleanContextClassifier(assertion_call_predicate(names))
    return RuleEngine([AssignmentInConditionRule(classifier)])
