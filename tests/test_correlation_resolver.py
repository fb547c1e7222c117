"""Test Correlation Resolver"""

from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from odxanalyzer.static_analysis import resolve_correlations

from odx_samples import correlation, el, parse_body, receive, send


class TestBinding:
    """Statement references landing on receive shapes"""

    def test_initializes_and_follows(self):
        body = (
            receive("r1", activate=True)
            + receive("r2")
            + correlation("c1", "OrderCorrelation", ("r1", True), ("r2", False))
        )
        model = parse_body(body)
        r1, r2 = model.tree.lookup("r1"), model.tree.lookup("r2")

        assert r1.payload.initializes_correlation_sets == ["OrderCorrelation"]
        assert r1.payload.follows_correlation_sets == []
        assert r2.payload.follows_correlation_sets == ["OrderCorrelation"]

    def test_declaration_before_receive_still_binds(self):
        """Binding runs after the whole tree exists"""
        body = correlation("c1", "Early", ("r1", True)) + receive("r1", activate=True)
        model = parse_body(body)
        assert model.tree.lookup("r1").payload.initializes_correlation_sets == ["Early"]

    def test_declaration_inside_scope(self):
        body = receive("r1") + el("Scope", correlation("c1", "Nested", ("r1", False)), oid="sc1")
        model = parse_body(body)
        assert model.tree.lookup("r1").payload.follows_correlation_sets == ["Nested"]

    def test_statement_refs_are_not_nodes(self):
        model = parse_body(receive("r1") + correlation("c1", "Corr", ("r1", False)))
        assert all(n.shape_type != "StatementRef" for n in model.tree)


class TestIdempotence:

    def test_resolving_twice_adds_nothing(self):
        body = receive("r2") + correlation("c1", "Corr", ("r2", False))
        model = parse_body(body)

        added = resolve_correlations(model.tree, model.shapes)

        assert added == 0
        assert model.tree.lookup("r2").payload.follows_correlation_sets == ["Corr"]

    def test_duplicate_reference_binds_once(self):
        body = receive("r2") + correlation("c1", "Corr", ("r2", False), ("r2", False))
        model = parse_body(body)
        assert model.tree.lookup("r2").payload.follows_correlation_sets == ["Corr"]

    def test_count_of_added_bindings(self):
        body = receive("r1") + receive("r2") + correlation("c1", "Corr", ("r1", True), ("r2", False))
        model = parse_body(body)
        for oid in ("r1", "r2"):
            payload = model.tree.lookup(oid).payload
            payload.initializes_correlation_sets.clear()
            payload.follows_correlation_sets.clear()

        assert resolve_correlations(model.tree, model.shapes) == 2


class TestIgnoredReferences:

    def test_missing_identifier(self):
        model = parse_body(receive("r1") + correlation("c1", "Corr", ("ghost", True)))
        payload = model.tree.lookup("r1").payload
        assert payload.initializes_correlation_sets == []
        assert payload.follows_correlation_sets == []

    def test_non_receive_target(self):
        model = parse_body(send("s1") + correlation("c1", "Corr", ("s1", True)))
        assert model.tree.lookup("s1").kind.value == "Send"
        assert not hasattr(model.tree.lookup("s1").payload, "initializes_correlation_sets")


class TestServiceLevelDeclarations:
    """Correlation sets declared beside the service body"""

    def test_service_declaration_binds_body_receives(self):
        declarations = correlation("svc-c1", "ServiceCorrelation", ("r1", True), ("r2", False))
        model = parse_body(receive("r1", activate=True) + receive("r2"), declarations=declarations)

        assert [n.name for n in model.service_shapes()] == ["ServiceCorrelation"]
        assert model.tree.lookup("svc-c1").sequence == -1
        assert model.tree.lookup("r1").payload.initializes_correlation_sets == ["ServiceCorrelation"]
        assert model.tree.lookup("r2").payload.follows_correlation_sets == ["ServiceCorrelation"]
