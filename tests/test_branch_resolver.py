"""Test Branch/Case Resolver

Decide true/false selection, Switch case keys and Listen branch slots.
"""

from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from odxanalyzer.models import ShapeKind

from odx_samples import branch, decide, el, parse_body, receive, send


class TestDecide:
    """Choosing the true branch and the condition"""

    def test_receive_decide_send(self):
        """Condition on the first branch only; the second branch is empty"""
        body = (
            receive("r1", activate=True)
            + decide("d1",
                     branch(send("s-true"), name="Yes", expression="X"),
                     branch(name="Else"))
            + send("s2")
        )
        model = parse_body(body)
        top = model.top_level_shapes()
        d = top[1]

        assert len(top) == 3
        assert d.kind is ShapeKind.DECIDE
        assert d.payload.expression == "X"
        assert [n.oid for n in model.tree.resolve(d.payload.true_branch)] == ["s-true"]
        assert d.payload.false_branch == []

    def test_branches_disjoint_and_parented(self):
        body = decide("d1",
                      branch(send("a"), send("b"), expression="x > 1"),
                      branch(send("c"), el("Scope", send("d"), oid="sc")))
        model = parse_body(body)
        d = model.tree.lookup("d1")

        true_set = set(d.payload.true_branch)
        false_set = set(d.payload.false_branch)
        assert true_set.isdisjoint(false_set)
        for handle in true_set | false_set:
            assert model.tree[handle].parent == d.handle
        assert d.children == []

    def test_first_branch_with_condition_is_true_branch(self):
        """Document order is not enough; the conditioned branch wins"""
        body = decide("d1",
                      branch(send("else-send"), name="Else"),
                      branch(send("if-send"), name="Rule_1", expression="msg.Total > 100"))
        model = parse_body(body)
        d = model.tree.lookup("d1")

        assert d.payload.expression == "msg.Total > 100"
        assert [n.oid for n in model.tree.resolve(d.payload.true_branch)] == ["if-send"]
        assert [n.oid for n in model.tree.resolve(d.payload.false_branch)] == ["else-send"]

    def test_condition_in_nested_expression_element(self):
        body = decide("d1",
                      branch(el("Expression", Expression="flag == true"), send("a")),
                      branch(send("b")))
        d = parse_body(body).tree.lookup("d1")
        assert d.payload.expression == "flag == true"

    def test_positional_fallback_and_sibling_condition(self):
        body = decide("d1",
                      el("Expression", Expression="sibling()"),
                      branch(send("a")),
                      branch(send("b")))
        model = parse_body(body)
        d = model.tree.lookup("d1")

        assert d.payload.expression == "sibling()"
        assert [n.oid for n in model.tree.resolve(d.payload.true_branch)] == ["a"]
        assert [n.oid for n in model.tree.resolve(d.payload.false_branch)] == ["b"]

    def test_no_branches_uses_direct_expression_child(self):
        d = parse_body(decide("d1", el("Expression", Expression="direct"))).tree.lookup("d1")
        assert d.payload.expression == "direct"
        assert d.payload.true_branch == []

    def test_branch_sequences_restart_at_zero(self):
        body = send("s0") + decide("d1",
                                   branch(send("t0"), send("t1"), expression="c"),
                                   branch(send("f0")))
        model = parse_body(body)
        tree = model.tree

        assert tree.lookup("d1").sequence == 1
        assert [tree.lookup(o).sequence for o in ("t0", "t1")] == [0, 1]
        assert tree.lookup("f0").sequence == 0
        assert tree.lookup("t0").context != tree.lookup("f0").context
        assert tree.lookup("t0").unique_id != tree.lookup("f0").unique_id

    def test_branch_shapes_are_indexed(self):
        body = decide("d1", branch(receive("deep"), expression="c"))
        model = parse_body(body)
        assert model.tree.lookup("deep").kind is ShapeKind.RECEIVE

    def test_generic_children_of_branch_shapes(self):
        """Shapes inside a branch still recurse into their own children"""
        body = decide("d1", branch(el("Scope", send("inner"), oid="sc"), expression="c"))
        model = parse_body(body)
        scope = model.tree.lookup("sc")

        assert [c.oid for c in model.tree.children_of(scope)] == ["inner"]
        assert model.tree.lookup("inner").sequence == 1


class TestSwitch:

    def test_cases_with_same_key_concatenate(self):
        body = el("Switch",
                  branch(send("a"), name="One", expression="1"),
                  branch(send("b"), send("c"), name="OneAgain", expression="1"),
                  oid="sw1", Expression="msg.Code")
        model = parse_body(body)
        sw = model.tree.lookup("sw1")

        assert sw.kind is ShapeKind.SWITCH
        assert sw.payload.expression == "msg.Code"
        assert list(sw.payload.cases) == ["1"]
        assert [n.oid for n in model.tree.resolve(sw.payload.cases["1"])] == ["a", "b", "c"]

    def test_default_case_detection(self):
        body = el("Switch",
                  branch(send("a"), name="Gold", expression="'GOLD'"),
                  branch(send("b"), name="DefaultCase", expression="'X'"),
                  branch(send("c"), name="Unconditioned"),
                  oid="sw1")
        model = parse_body(body)
        sw = model.tree.lookup("sw1")

        assert list(sw.payload.cases) == ["'GOLD'"]
        assert [n.oid for n in model.tree.resolve(sw.payload.default_case)] == ["b", "c"]

    def test_case_keyed_by_value_not_name(self):
        """Named cases key on their value; a named case without a value is the default"""
        body = el("Switch",
                  branch(send("a"), name="Premium", expression="2"),
                  branch(send("b"), name="Premium"),
                  oid="sw1")
        model = parse_body(body)
        sw = model.tree.lookup("sw1")

        assert list(sw.payload.cases) == ["2"]
        assert [n.oid for n in model.tree.resolve(sw.payload.default_case)] == ["b"]

    def test_discriminant_from_nested_expression(self):
        body = el("Switch", el("Expression", Expression="nested.Code"), oid="sw1")
        assert parse_body(body).tree.lookup("sw1").payload.expression == "nested.Code"

    def test_case_value_from_nested_expression(self):
        body = el("Switch", branch(el("Expression", Expression="7"), send("a"), name="Seven"), oid="sw1")
        sw = parse_body(body).tree.lookup("sw1")
        assert list(sw.payload.cases) == ["7"]

    def test_each_case_has_own_context(self):
        body = el("Switch",
                  branch(send("a"), expression="1"),
                  branch(send("b"), expression="2"),
                  oid="sw1")
        tree = parse_body(body).tree

        assert tree.lookup("a").sequence == tree.lookup("b").sequence == 0
        assert tree.lookup("a").parent == tree.lookup("sw1").handle
        assert tree.lookup("sw1").children == []


class TestListen:
    """Dedicated branch slots are the single source of Listen substructure"""

    def test_listen_branches_in_payload_not_children(self):
        body = el("Listen",
                  el("Task", receive("r-a", activate=True), send("s-a"), Name="A"),
                  el("ListenBranch", el("Delay", oid="delay", Expression="TimeSpan.FromMinutes(5)"), Name="B"),
                  oid="l1")
        model = parse_body(body)
        listen = model.tree.lookup("l1")

        assert listen.kind is ShapeKind.LISTEN
        assert listen.name == "Listen"
        assert listen.children == []
        assert len(listen.payload.branches) == 2
        assert [n.oid for n in model.tree.resolve(listen.payload.branches[0])] == ["r-a", "s-a"]
        assert [n.oid for n in model.tree.resolve(listen.payload.branches[1])] == ["delay"]
        for branch_handles in listen.payload.branches:
            for handle in branch_handles:
                assert model.tree[handle].parent == listen.handle

    def test_listen_branch_sequences_restart(self):
        body = el("Listen",
                  el("Task", send("a0"), send("a1")),
                  el("Task", send("b0")),
                  oid="l1")
        tree = parse_body(body).tree
        assert [tree.lookup(o).sequence for o in ("a0", "a1", "b0")] == [0, 1, 0]

    def test_listen_branch_container_is_not_a_node(self):
        body = el("Listen", el("Task", send("a"), Name="BranchTask"), oid="l1")
        model = parse_body(body)
        assert all(n.shape_type != "Task" for n in model.tree)
