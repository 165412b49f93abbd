from ast_model import ExprKind, InvalidInputError, StorageKind


# Targets whose history cannot be tied to one control-flow path in this function.
ALWAYS_FLAGGED = {
    StorageKind.GLOBAL,
    StorageKind.STATIC_LOCAL,
    StorageKind.MEMBER,
    StorageKind.DEREFERENCED,
}

_FUNCTION_SCOPED = {StorageKind.LOCAL, StorageKind.PARAMETER, StorageKind.STATIC_LOCAL}


def target_variable(assignment):
    target = assignment.target
    if target is None or target.kind != ExprKind.IDENTIFIER:
        return None
    return target.variable


def classify_target(assignment, function):
    """
    Storage kind of an assignment's left-hand side, or None when the target
    is not something this check reasons about.
    """
    target = assignment.target
    if target is None:
        raise InvalidInputError(f"assignment on line {assignment.line} has no target operand")

    kind = target.kind
    if kind == ExprKind.IDENTIFIER:
        variable = target.variable
        if variable is None:
            raise InvalidInputError(
                f"'{target.name or '?'}' on line {target.line} does not resolve to a declaration"
            )
        if variable.storage_kind in _FUNCTION_SCOPED and not function.declares(variable):
            raise InvalidInputError(
                f"'{variable.name}' on line {target.line} has no declaration in function '{function.name}'"
            )
        return variable.storage_kind

    if kind in (ExprKind.DEREFERENCE, ExprKind.SUBSCRIPT):
        return StorageKind.DEREFERENCED

    if kind == ExprKind.MEMBER:
        if target.op == "->":
            return StorageKind.DEREFERENCED
        return StorageKind.MEMBER

    return None
