class BaseRule:
    """
    A check run by the RuleEngine. Rules look at one FunctionBody at a time
    and return a list of Alert objects (or nothing).
    """

    def matches(self, function):
        raise NotImplementedError("matches() must be implemented")

    def apply(self, function):
        raise NotImplementedError("apply() must be implemented")

    def finalize(self):
        """
        Optional hook for rules that report only after every function was seen.
        """
        return []
