"""
Definite-assignment analysis for locals and parameters.

A forward "must" dataflow problem: the state at a program point is the set
of tracked variables assigned on every path reaching it. Parameters are
assigned on entry. Interior blocks start at the full universe and
confluence is intersection, so the fixpoint is the greatest solution.
"""

import logging
from collections import deque

from ast_model import ExprKind, InvalidInputError

logger = logging.getLogger(__name__)

_DEFINING_KINDS = {ExprKind.ASSIGNMENT, ExprKind.COMPOUND_ASSIGNMENT, ExprKind.INCREMENT}


def _tracked_target(expr):
    target = expr.target
    if target is None or target.kind != ExprKind.IDENTIFIER:
        return None
    variable = target.variable
    if variable is None or not variable.is_tracked:
        return None
    return variable


def flow_expr(expr, assigned, visit=None):
    """
    Return the set assigned after evaluating expr, given the set before it.
    visit(assignment, before_store) is called for every plain assignment
    with the state just before its store takes effect.
    """
    kind = expr.kind

    if kind in (ExprKind.LOGICAL_AND, ExprKind.LOGICAL_OR):
        left = flow_expr(expr.operands[0], assigned, visit) if expr.operands else assigned
        for operand in expr.operands[1:]:
            flow_expr(operand, left, visit)
        # The right-hand side may be short-circuited away.
        return left

    if kind == ExprKind.TERNARY and len(expr.operands) == 3:
        cond, when_true, when_false = expr.operands
        after_cond = flow_expr(cond, assigned, visit)
        return flow_expr(when_true, after_cond, visit) & flow_expr(when_false, after_cond, visit)

    if kind in _DEFINING_KINDS:
        variable = _tracked_target(expr)
        state = assigned
        for index, operand in enumerate(expr.operands):
            # Writing a plain identifier does not read it.
            if index == 0 and kind == ExprKind.ASSIGNMENT and operand.kind == ExprKind.IDENTIFIER:
                continue
            state = flow_expr(operand, state, visit)
        if kind == ExprKind.ASSIGNMENT and visit is not None:
            visit(expr, state)
        if variable is not None:
            state = state | {variable}
        return state

    state = assigned
    for operand in expr.operands:
        state = flow_expr(operand, state, visit)
    return state


class DefiniteAssignmentAnalysis:
    def __init__(self, function, cfg):
        self.function = function
        self.cfg = cfg
        self.universe = frozenset(
            v for v in list(function.parameters) + list(function.variables) if v.is_tracked
        )
        self._in = {}
        self._out = {}
        self._before = {}
        self._converged = False

    def init_entry(self):
        return frozenset(p for p in self.function.parameters if p.is_tracked)

    def transfer(self, block, state, visit=None):
        for element in block.elements:
            if element.kind == "decl":
                if element.expr is not None:
                    state = flow_expr(element.expr, state, visit)
                if element.variable.is_tracked:
                    if element.initialized:
                        state = state | {element.variable}
                    else:
                        state = state - {element.variable}
            elif element.expr is not None:
                state = flow_expr(element.expr, state, visit)
        return frozenset(state)

    def run(self, max_iterations=10000):
        """Iterate to fixpoint, then record the state before every assignment."""
        blocks = self.cfg.blocks
        order = self.cfg.reverse_postorder
        entry = self.cfg.entry

        for block in blocks.values():
            self._in[block.id] = self.init_entry() if block is entry else self.universe
            self._out[block.id] = self.transfer(block, self._in[block.id])

        worklist = deque(order)
        pending = {b.id for b in order}
        iteration = 0

        while worklist and iteration < max_iterations:
            iteration += 1
            block = worklist.popleft()
            pending.discard(block.id)

            if block is entry:
                new_in = self.init_entry()
            elif block.predecessors:
                new_in = self.universe
                for pred in block.predecessors:
                    new_in = new_in & self._out[pred.id]
            else:
                new_in = self.universe

            self._in[block.id] = new_in
            new_out = self.transfer(block, new_in)
            if new_out != self._out[block.id]:
                self._out[block.id] = new_out
                for succ in block.successors:
                    if succ.id not in pending:
                        worklist.append(succ)
                        pending.add(succ.id)

        if worklist:
            raise RuntimeError(f"Definite-assignment analysis did not converge in {max_iterations} iterations")

        logger.debug("definite assignment for '%s' converged after %d iteration(s)", self.function.name, iteration)

        def record(assignment, state):
            self._before[id(assignment)] = state

        for block in blocks.values():
            self.transfer(block, self._in[block.id], record)

        self._converged = True
        return iteration

    def in_state(self, block_id):
        return self._in[block_id]

    def out_state(self, block_id):
        return self._out[block_id]

    def assigned_before(self, assignment):
        if not self._converged:
            self.run()
        try:
            return self._before[id(assignment)]
        except KeyError:
            raise InvalidInputError(
                f"assignment on line {assignment.line} is not reachable from the control-flow graph"
            ) from None

    def possibly_first_use(self, assignment, variable):
        """True when some path reaches the assignment without variable being assigned."""
        return variable not in self.assigned_before(assignment)
