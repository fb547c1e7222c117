"""Test Shape Hierarchy Diagnostics"""

from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from odxanalyzer.diagnostics import count_shapes, diagnose, render_tree

from odx_samples import branch, decide, el, parse_body, receive, send


BODY = (
    receive("r1", name="ReceiveOrder", activate=True)
    + decide("d1",
             branch(send("s1", name="SendApproved"), expression="Order.Total > 100"),
             branch(send("s2", name="SendRejected")),
             name="CheckTotal")
    + el("Switch",
         branch(send("s3", name="SendGold"), expression="'GOLD'"),
         branch(send("s4", name="SendOther"), name="Default"),
         oid="sw1", Name="Tier", Expression="Order.Tier")
)


class TestCounts:

    def test_nested_shapes_included(self):
        counts = count_shapes(parse_body(BODY))
        assert counts == {"Receive": 1, "Decide": 1, "Send": 4, "Switch": 1}


class TestRender:

    def test_branch_labels_and_indentation(self):
        lines = render_tree(parse_body(BODY))

        assert lines[0].startswith("[Receive] ReceiveOrder [r1@body#0] [Seq:0]")
        assert lines[1].startswith("[Decide] CheckTotal")
        assert "  Expression: Order.Total > 100" in lines
        assert "  TRUE branch (1 shapes):" in lines
        assert "  FALSE branch (1 shapes):" in lines
        assert any(line.startswith("    [Send] SendApproved") for line in lines)
        assert "  CASE ''GOLD'' (1 shapes):" in lines
        assert "  DEFAULT (1 shapes):" in lines

    def test_listen_and_construct(self):
        body = (
            el("Listen", el("Task", receive("r1")), el("Task", el("Delay", oid="dl")), oid="l1")
            + el("Construct", el("MessageRef", Ref="Out"),
                 el("MessageAssignment", oid="ma", Name="Assign"), oid="c1", Name="Build")
        )
        lines = render_tree(parse_body(body))

        assert "  BRANCH 1 (1 shapes):" in lines
        assert "  BRANCH 2 (1 shapes):" in lines
        assert "  Constructs: Out" in lines
        assert any(line.startswith("  [MessageAssignment] Assign") for line in lines)

    def test_missing_expression_placeholder(self):
        lines = render_tree(parse_body(decide("d1", branch(send("a")))))
        assert "  Expression: (no expression)" in lines


class TestDiagnose:

    def test_sections(self):
        text = diagnose(parse_body(BODY, name="Orders", namespace="Contoso"))

        assert "=== Orchestration Diagnostic: Contoso.Orders ===" in text
        assert "Top-Level Shapes: 3" in text
        assert "  Send: 4" in text
        assert "=== COMPLETE SHAPE HIERARCHY ===" in text
