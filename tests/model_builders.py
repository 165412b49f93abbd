"""Shorthand constructors for hand-built function bodies used by the unit tests."""

from ast_model import Expr, ExprKind, FunctionBody, Stmt, StmtKind, StorageKind, Variable


def local(name, initialized=False):
    return Variable(name, StorageKind.LOCAL, has_initializer=initialized)


def param(name):
    return Variable(name, StorageKind.PARAMETER, has_initializer=True)


def global_var(name):
    return Variable(name, StorageKind.GLOBAL)


def static_local(name, initialized=False):
    return Variable(name, StorageKind.STATIC_LOCAL, has_initializer=initialized)


def ident(variable, line=1, parens=0):
    return Expr(ExprKind.IDENTIFIER, name=variable.name, variable=variable, line=line, paren_depth=parens)


def lit(value=0, line=1):
    return Expr(ExprKind.LITERAL, name=str(value), line=line)


def assign(target, value=None, line=1, parens=0, column=None):
    if isinstance(target, Variable):
        target = ident(target, line)
    if value is None:
        value = lit(0, line)
    return Expr(ExprKind.ASSIGNMENT, [target, value], op="=", line=line, column=column, paren_depth=parens)


def compound(target, value=None, op="+=", line=1):
    if isinstance(target, Variable):
        target = ident(target, line)
    return Expr(ExprKind.COMPOUND_ASSIGNMENT, [target, value or lit(1, line)], op=op, line=line)


def inc(variable, line=1):
    return Expr(ExprKind.INCREMENT, [ident(variable, line)], op="++", line=line)


def not_(operand, line=1, parens=0):
    return Expr(ExprKind.NOT, [operand], op="!", line=line, paren_depth=parens)


def and_(left, right, line=1, parens=0):
    return Expr(ExprKind.LOGICAL_AND, [left, right], op="&&", line=line, paren_depth=parens)


def or_(left, right, line=1, parens=0):
    return Expr(ExprKind.LOGICAL_OR, [left, right], op="||", line=line, paren_depth=parens)


def cmp(left, right, op="==", line=1, parens=0):
    return Expr(ExprKind.COMPARISON, [left, right], op=op, line=line, paren_depth=parens)


def ternary(cond, when_true=None, when_false=None, line=1):
    return Expr(ExprKind.TERNARY, [cond, when_true or lit(2, line), when_false or lit(1, line)], line=line)


def call(name, *args, line=1):
    return Expr(ExprKind.CALL, list(args), name=name, line=line)


def deref(operand, line=1):
    if isinstance(operand, Variable):
        operand = ident(operand, line)
    return Expr(ExprKind.DEREFERENCE, [operand], op="*", line=line)


def member(base, name, op=".", line=1):
    if isinstance(base, Variable):
        base = ident(base, line)
    return Expr(ExprKind.MEMBER, [base], name=name, op=op, line=line)


def subscript(base, index=None, line=1):
    if isinstance(base, Variable):
        base = ident(base, line)
    return Expr(ExprKind.SUBSCRIPT, [base, index or lit(0, line)], line=line)


def block(*stmts, line=None):
    return Stmt(StmtKind.BLOCK, stmts=list(stmts), line=line)


def expr_stmt(expr):
    return Stmt(StmtKind.EXPR, expr=expr, line=expr.line)


def decl(variable, init=None, line=1):
    return Stmt(StmtKind.DECL, variable=variable, expr=init, line=line)


def if_(cond, body=None, orelse=None):
    return Stmt(StmtKind.IF, cond=cond, body=body or block(), orelse=orelse, line=cond.line)


def while_(cond, body=None):
    return Stmt(StmtKind.WHILE, cond=cond, body=body or block(), line=cond.line)


def do_while(cond, body=None):
    return Stmt(StmtKind.DO_WHILE, cond=cond, body=body or block(), line=cond.line)


def for_(init=None, cond=None, update=None, body=None, line=1):
    if init is not None and isinstance(init, Expr):
        init = expr_stmt(init)
    return Stmt(StmtKind.FOR, init=init, cond=cond, update=update, body=body or block(), line=line)


def switch(cond, *stmts):
    return Stmt(StmtKind.SWITCH, cond=cond, body=block(*stmts), line=cond.line)


def case(value, body=None, line=1):
    return Stmt(StmtKind.CASE, expr=lit(value, line), body=body, line=line)


def default(body=None, line=1):
    return Stmt(StmtKind.DEFAULT, body=body, line=line)


def return_(expr=None, line=1):
    return Stmt(StmtKind.RETURN, expr=expr, line=line)


def break_(line=1):
    return Stmt(StmtKind.BREAK, line=line)


def continue_(line=1):
    return Stmt(StmtKind.CONTINUE, line=line)


def goto(label, line=1):
    return Stmt(StmtKind.GOTO, label=label, line=line)


def label(name, body=None, line=1):
    return Stmt(StmtKind.LABEL, label=name, body=body, line=line)


def function(*stmts, params=(), variables=(), name="f"):
    return FunctionBody(name, block(*stmts), parameters=list(params), variables=list(variables), line=1)
