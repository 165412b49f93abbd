import unittest

from ast_model import FunctionBody, InvalidInputError
from control_flow_graph import CFG, build_cfg, function_cfg
from tests.model_builders import (
    assign, block, break_, case, cmp, continue_, decl, default, do_while, expr_stmt, for_,
    function, goto, ident, if_, label, lit, local, param, return_, switch, while_,
)


def kinds_of(blocks):
    return [b.kind for b in blocks]


def block_of(cfg, expr):
    for b in cfg.blocks.values():
        if any(e.expr is expr for e in b.elements):
            return b
    return None


class ControlFlowGraphTest(unittest.TestCase):
    def setUp(self):
        self.x = param("x")

    def test_straight_line_code_is_one_block(self):
        y = local("y")
        first = assign(y, line=2)
        second = assign(y, line=3)
        cfg = build_cfg(function(decl(y), expr_stmt(first), expr_stmt(second), params=[self.x], variables=[y]))

        body = block_of(cfg, first)
        self.assertIs(body, block_of(cfg, second))
        self.assertEqual([e.kind for e in body.elements], ["decl", "eval", "eval"])
        self.assertEqual(cfg.entry.successors, [body])
        self.assertIn(cfg.exit, body.successors)

    def test_if_without_else_joins_from_condition(self):
        then_expr = assign(self.x, line=2)
        cond = ident(self.x)
        cfg = build_cfg(function(if_(cond, block(expr_stmt(then_expr))), params=[self.x]))

        cond_block = block_of(cfg, cond)
        then_block = block_of(cfg, then_expr)
        self.assertEqual(len(cond_block.successors), 2)
        after = [b for b in cond_block.successors if b is not then_block][0]
        self.assertEqual(after.kind, "after-if")
        self.assertIn(after, then_block.successors)

    def test_if_else_branches(self):
        a = assign(self.x, line=2)
        b = assign(self.x, line=3)
        cfg = build_cfg(function(if_(ident(self.x), block(expr_stmt(a)), block(expr_stmt(b))), params=[self.x]))

        self.assertEqual(block_of(cfg, a).kind, "then")
        self.assertEqual(block_of(cfg, b).kind, "else")
        self.assertEqual(block_of(cfg, a).successors, block_of(cfg, b).successors)

    def test_while_loop_has_back_edge(self):
        cond = cmp(ident(self.x), lit(0), op=">")
        step = assign(self.x, line=2)
        cfg = build_cfg(function(while_(cond, block(expr_stmt(step))), params=[self.x]))

        cond_block = block_of(cfg, cond)
        body_block = block_of(cfg, step)
        self.assertEqual(cond_block.kind, "loop-cond")
        self.assertIn(body_block, cond_block.successors)
        self.assertIn(cond_block, body_block.successors)

    def test_do_while_body_runs_before_condition(self):
        cond = ident(self.x)
        step = assign(self.x, line=2)
        cfg = build_cfg(function(do_while(cond, block(expr_stmt(step))), params=[self.x]))

        body_block = block_of(cfg, step)
        cond_block = block_of(cfg, cond)
        self.assertEqual(body_block.successors, [cond_block])
        self.assertIn(body_block, cond_block.successors)

    def test_for_loop_clauses(self):
        i = local("i")
        init = assign(i)
        cond = cmp(ident(i), lit(10), op="<")
        update = assign(i, line=2)
        cfg = build_cfg(function(for_(init, cond, update), variables=[i]))

        self.assertEqual(block_of(cfg, cond).kind, "loop-cond")
        update_block = block_of(cfg, update)
        self.assertEqual(update_block.kind, "loop-update")
        self.assertEqual(update_block.successors, [block_of(cfg, cond)])

    def test_infinite_for_only_exits_through_break(self):
        cfg = build_cfg(function(for_(None, None, None)))
        cond_block = [b for b in cfg.blocks.values() if b.kind == "loop-cond"][0]
        self.assertEqual(kinds_of(cond_block.successors), ["loop-body"])

    def test_break_and_continue_targets(self):
        cond = ident(self.x)
        cfg = build_cfg(function(while_(cond, block(if_(ident(self.x), block(break_())), continue_())), params=[self.x]))

        cond_block = block_of(cfg, cond)
        after_loop = [b for b in cfg.blocks.values() if b.kind == "after-loop"][0]
        then_block = [b for b in cfg.blocks.values() if b.kind == "then"][0]
        self.assertIn(after_loop, then_block.successors)
        after_if = [b for b in cfg.blocks.values() if b.kind == "after-if"][0]
        self.assertIn(cond_block, after_if.successors)

    def test_break_outside_loop_is_invalid(self):
        with self.assertRaises(InvalidInputError):
            build_cfg(function(break_()))

    def test_continue_inside_switch_only_is_invalid(self):
        with self.assertRaises(InvalidInputError):
            build_cfg(function(switch(ident(self.x), case(1, continue_())), params=[self.x]))

    def test_switch_without_default_can_skip_every_case(self):
        cond = ident(self.x)
        cfg = build_cfg(function(switch(cond, case(1, break_()), case(2)), params=[self.x]))

        dispatch = block_of(cfg, cond)
        self.assertEqual(sorted(kinds_of(dispatch.successors)), ["after-switch", "case", "case"])

    def test_switch_with_default_always_enters_a_label(self):
        cond = ident(self.x)
        cfg = build_cfg(function(switch(cond, case(1, break_()), default()), params=[self.x]))

        dispatch = block_of(cfg, cond)
        self.assertEqual(sorted(kinds_of(dispatch.successors)), ["case", "default"])

    def test_case_falls_through_to_next_label(self):
        first = assign(self.x, line=2)
        cfg = build_cfg(function(switch(ident(self.x), case(1, expr_stmt(first)), case(2)), params=[self.x]))

        first_block = block_of(cfg, first)
        self.assertEqual(kinds_of(first_block.successors), ["case"])

    def test_return_goes_to_exit(self):
        value = ident(self.x)
        cfg = build_cfg(function(return_(value), params=[self.x]))
        self.assertEqual(block_of(cfg, value).successors, [cfg.exit])

    def test_goto_links_to_label_defined_later(self):
        target = assign(self.x, line=3)
        cfg = build_cfg(function(goto("out"), label("out", expr_stmt(target)), params=[self.x]))

        label_block = block_of(cfg, target)
        self.assertEqual(label_block.kind, "label")
        self.assertEqual(len(label_block.predecessors), 2)

    def test_goto_to_missing_label_is_invalid(self):
        with self.assertRaises(InvalidInputError):
            build_cfg(function(goto("nowhere")))

    def test_reverse_postorder_starts_at_entry_and_covers_all_blocks(self):
        cfg = build_cfg(function(while_(ident(self.x), block(return_())), params=[self.x]))
        order = cfg.reverse_postorder
        self.assertIs(order[0], cfg.entry)
        self.assertEqual(sorted(b.id for b in order), sorted(cfg.blocks))

    def test_validate_rejects_foreign_and_one_sided_edges(self):
        cfg = build_cfg(function(expr_stmt(ident(self.x)), params=[self.x]))
        other = CFG("other").new_block()
        cfg.entry.successors.append(other)
        with self.assertRaises(InvalidInputError):
            cfg.validate()

        cfg = build_cfg(function(expr_stmt(ident(self.x)), params=[self.x]))
        body = cfg.entry.successors[0]
        body.predecessors.clear()
        with self.assertRaises(InvalidInputError):
            cfg.validate()

    def test_validate_requires_entry_and_exit(self):
        with self.assertRaises(InvalidInputError):
            CFG("empty").validate()

    def test_function_cfg_prefers_attached_graph(self):
        fn = function(expr_stmt(ident(self.x)), params=[self.x])
        attached = build_cfg(fn)
        fn.cfg = attached
        self.assertIs(function_cfg(fn), attached)

        broken = FunctionBody("g", block(), cfg=CFG("g"))
        with self.assertRaises(InvalidInputError):
            function_cfg(broken)


if __name__ == "__main__":
    unittest.main()
