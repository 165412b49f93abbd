"""
Intraprocedural control-flow graph over the statement model.

Each basic block holds an ordered list of elements. An element is either an
expression evaluated for its effects ("eval") or a local declaration
("decl"), the two things the initialization analysis needs to see. Blocks
are numbered in creation order so graphs are reproducible.
"""

from ast_model import InvalidInputError, StmtKind


class Element:
    def __init__(self, kind, expr=None, variable=None, initialized=False):
        self.kind = kind
        self.expr = expr
        self.variable = variable
        self.initialized = initialized

    def __repr__(self):
        if self.kind == "decl":
            return f"Element(decl {self.variable!r}, initialized={self.initialized})"
        return f"Element(eval {self.expr!r})"


class BasicBlock:
    def __init__(self, block_id, kind="body"):
        self.id = block_id
        self.kind = kind
        self.elements = []
        self.successors = []
        self.predecessors = []

    def __repr__(self):
        return f"BasicBlock(id={self.id}, kind={self.kind!r}, elements={len(self.elements)})"


class CFG:
    def __init__(self, name=None):
        self.name = name
        self.blocks = {}
        self.entry = None
        self.exit = None

    def new_block(self, kind="body"):
        block = BasicBlock(len(self.blocks), kind)
        self.blocks[block.id] = block
        return block

    def link(self, src, dst):
        if dst not in src.successors:
            src.successors.append(dst)
            dst.predecessors.append(src)

    @property
    def reverse_postorder(self):
        if self.entry is None:
            return []

        order = []
        visited = {self.entry.id}
        stack = [(self.entry, iter(self.entry.successors))]
        while stack:
            block, succs = stack[-1]
            advanced = False
            for succ in succs:
                if succ.id not in visited:
                    visited.add(succ.id)
                    stack.append((succ, iter(succ.successors)))
                    advanced = True
                    break
            if not advanced:
                stack.pop()
                order.append(block)

        order.reverse()
        # Unreachable blocks still get a state; append them in id order.
        order.extend(b for b in self.blocks.values() if b.id not in visited)
        return order

    def validate(self):
        if self.entry is None or self.exit is None:
            raise InvalidInputError(f"control-flow graph for '{self.name}' has no entry or exit block")

        for block in (self.entry, self.exit):
            if self.blocks.get(block.id) is not block:
                raise InvalidInputError(f"block {block.id} is not part of the graph for '{self.name}'")

        for block in self.blocks.values():
            for succ in block.successors:
                if self.blocks.get(succ.id) is not succ:
                    raise InvalidInputError(f"block {block.id} has an edge to a foreign block {succ.id}")
                if block not in succ.predecessors:
                    raise InvalidInputError(f"edge {block.id}->{succ.id} is missing its predecessor entry")
            for pred in block.predecessors:
                if self.blocks.get(pred.id) is not pred:
                    raise InvalidInputError(f"block {block.id} has a predecessor from a foreign block {pred.id}")
                if block not in pred.successors:
                    raise InvalidInputError(f"edge {pred.id}->{block.id} is missing its successor entry")
        return self

    def __repr__(self):
        return f"CFG({self.name!r}, blocks={len(self.blocks)})"


class _CfgBuilder:
    def __init__(self, name):
        self.cfg = CFG(name)
        self.cfg.entry = self.cfg.new_block("entry")
        self.cfg.exit = self.cfg.new_block("exit")
        self.current = self.cfg.new_block("body")
        self.cfg.link(self.cfg.entry, self.current)

        # Stack of (break target, continue target or None for switches).
        self.jump_targets = []
        self.switches = []
        self.labels = {}
        self.gotos = []

    def build(self, body):
        self._stmt(body)
        self.cfg.link(self.current, self.cfg.exit)

        for block, label in self.gotos:
            target = self.labels.get(label)
            if target is None:
                raise InvalidInputError(f"goto to undefined label '{label}' in '{self.cfg.name}'")
            self.cfg.link(block, target)

        return self.cfg

    def _new(self, kind):
        return self.cfg.new_block(kind)

    def _eval(self, expr):
        if expr is not None:
            self.current.elements.append(Element("eval", expr=expr))

    def _declare(self, variable, initializer=None, initialized=False):
        if variable is None:
            raise InvalidInputError("declaration without a variable")
        self.current.elements.append(Element("decl", expr=initializer, variable=variable, initialized=initialized))

    def _jump_to(self, target):
        self.cfg.link(self.current, target)
        self.current = self._new("unreachable")

    def _loop(self, body, break_target, continue_target):
        self.jump_targets.append((break_target, continue_target))
        self._stmt(body)
        self.jump_targets.pop()

    def _stmt(self, stmt):
        if stmt is None:
            return

        kind = stmt.kind
        handler = getattr(self, "_stmt_" + kind.name.lower(), None)
        if handler is None:
            raise InvalidInputError(f"unsupported statement kind {kind!r}")
        handler(stmt)

    def _stmt_block(self, stmt):
        for child in stmt.stmts:
            self._stmt(child)

    def _stmt_other(self, stmt):
        for expr in stmt.expressions():
            self._eval(expr)
        for child in stmt.children():
            self._stmt(child)

    def _stmt_expr(self, stmt):
        self._eval(stmt.expr)

    def _stmt_decl(self, stmt):
        variable = stmt.variable
        initialized = variable.has_initializer if variable is not None else False
        self._declare(variable, stmt.expr, initialized)

    def _stmt_if(self, stmt):
        self._eval(stmt.cond)
        cond_block = self.current

        then_block = self._new("then")
        self.cfg.link(cond_block, then_block)
        self.current = then_block
        self._stmt(stmt.body)
        then_end = self.current

        else_end = cond_block
        if stmt.orelse is not None:
            else_block = self._new("else")
            self.cfg.link(cond_block, else_block)
            self.current = else_block
            self._stmt(stmt.orelse)
            else_end = self.current

        after = self._new("after-if")
        self.cfg.link(then_end, after)
        self.cfg.link(else_end, after)
        self.current = after

    def _stmt_while(self, stmt):
        cond_block = self._new("loop-cond")
        self.cfg.link(self.current, cond_block)
        self.current = cond_block
        self._eval(stmt.cond)

        body_block = self._new("loop-body")
        after = self._new("after-loop")
        self.cfg.link(cond_block, body_block)
        self.cfg.link(cond_block, after)

        self.current = body_block
        self._loop(stmt.body, after, cond_block)
        self.cfg.link(self.current, cond_block)
        self.current = after

    def _stmt_do_while(self, stmt):
        body_block = self._new("loop-body")
        cond_block = self._new("loop-cond")
        after = self._new("after-loop")
        self.cfg.link(self.current, body_block)

        self.current = body_block
        self._loop(stmt.body, after, cond_block)
        self.cfg.link(self.current, cond_block)

        self.current = cond_block
        self._eval(stmt.cond)
        self.cfg.link(cond_block, body_block)
        self.cfg.link(cond_block, after)
        self.current = after

    def _stmt_for(self, stmt):
        self._stmt(stmt.init)

        cond_block = self._new("loop-cond")
        self.cfg.link(self.current, cond_block)
        self.current = cond_block
        self._eval(stmt.cond)

        body_block = self._new("loop-body")
        update_block = self._new("loop-update")
        after = self._new("after-loop")
        self.cfg.link(cond_block, body_block)
        if stmt.cond is not None:
            self.cfg.link(cond_block, after)

        self.current = body_block
        self._loop(stmt.body, after, update_block)
        self.cfg.link(self.current, update_block)

        self.current = update_block
        self._eval(stmt.update)
        self.cfg.link(update_block, cond_block)
        self.current = after

    def _stmt_range_for(self, stmt):
        self._eval(stmt.expr)

        cond_block = self._new("loop-cond")
        body_block = self._new("loop-body")
        after = self._new("after-loop")
        self.cfg.link(self.current, cond_block)
        self.cfg.link(cond_block, body_block)
        self.cfg.link(cond_block, after)

        self.current = body_block
        if stmt.variable is not None:
            self._declare(stmt.variable, initialized=True)
        self._loop(stmt.body, after, cond_block)
        self.cfg.link(self.current, cond_block)
        self.current = after

    def _stmt_switch(self, stmt):
        self._eval(stmt.cond)
        dispatch = self.current
        after = self._new("after-switch")

        self.switches.append({"dispatch": dispatch, "has_default": False})
        self.jump_targets.append((after, None))
        self.current = self._new("switch-body")
        self._stmt(stmt.body)
        self.cfg.link(self.current, after)
        self.jump_targets.pop()
        switch = self.switches.pop()

        if not switch["has_default"]:
            self.cfg.link(dispatch, after)
        self.current = after

    def _stmt_case(self, stmt):
        if not self.switches:
            raise InvalidInputError(f"case label outside a switch on line {stmt.line}")
        switch = self.switches[-1]
        if stmt.kind == StmtKind.DEFAULT:
            switch["has_default"] = True

        block = self._new(stmt.kind.value)
        self.cfg.link(self.current, block)
        self.cfg.link(switch["dispatch"], block)
        self.current = block
        self._stmt(stmt.body)

    _stmt_default = _stmt_case

    def _stmt_return(self, stmt):
        self._eval(stmt.expr)
        self._jump_to(self.cfg.exit)

    def _stmt_break(self, stmt):
        if not self.jump_targets:
            raise InvalidInputError(f"break outside a loop or switch on line {stmt.line}")
        self._jump_to(self.jump_targets[-1][0])

    def _stmt_continue(self, stmt):
        for _break_target, continue_target in reversed(self.jump_targets):
            if continue_target is not None:
                self._jump_to(continue_target)
                return
        raise InvalidInputError(f"continue outside a loop on line {stmt.line}")

    def _stmt_goto(self, stmt):
        self.gotos.append((self.current, stmt.label))
        self.current = self._new("unreachable")

    def _stmt_label(self, stmt):
        block = self._new("label")
        self.cfg.link(self.current, block)
        self.labels[stmt.label] = block
        self.current = block
        self._stmt(stmt.body)

    def _stmt_try(self, stmt):
        start = self.current
        body_block = self._new("try")
        self.cfg.link(start, body_block)
        self.current = body_block
        for child in stmt.stmts:
            self._stmt(child)

        after = self._new("after-try")
        self.cfg.link(self.current, after)

        # A handler may run before anything in the try body has completed.
        for handler in stmt.handlers:
            handler_block = self._new("catch")
            self.cfg.link(start, handler_block)
            self.current = handler_block
            self._stmt(handler)
            self.cfg.link(self.current, after)

        self.current = after


def build_cfg(function):
    """Lower a FunctionBody's statement tree to basic blocks."""
    return _CfgBuilder(function.name).build(function.body)


def function_cfg(function):
    """The graph supplied with the function if any (validated), else a fresh one."""
    if function.cfg is not None:
        return function.cfg.validate()
    return build_cfg(function).validate()
