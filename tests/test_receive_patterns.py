"""Test Receive Pattern Classification"""

from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from odxanalyzer.static_analysis import ReceivePattern, analyze_receive_pattern

from odx_samples import correlation, el, parse_body, receive, send


def classify(body: str, **kwargs):
    return analyze_receive_pattern(parse_body(body, **kwargs))


class TestSingleEntry:

    def test_callable_without_activation(self):
        analysis = classify(receive("r1") + send("s1"))

        assert analysis.pattern is ReceivePattern.CALLABLE
        assert analysis.requires_request_trigger
        assert analysis.primary_receive is None
        assert analysis.total_receive_count == 0
        assert analysis.is_valid
        assert analysis.migration_warnings

    def test_single_trigger(self):
        analysis = classify(receive("r1", activate=True) + send("s1"))

        assert analysis.pattern is ReceivePattern.SINGLE_TRIGGER
        assert analysis.primary_receive.oid == "r1"
        assert analysis.secondary_receives == []
        assert analysis.migration_warnings == []

    def test_initializing_trigger_without_followers(self):
        body = receive("r1", activate=True) + correlation("c1", "Corr", ("r1", True))
        assert classify(body).pattern is ReceivePattern.SINGLE_TRIGGER


class TestConvoy:

    def test_followers_of_initialized_set(self):
        body = (
            receive("r1", activate=True)
            + receive("r2")
            + receive("r3")
            + receive("r4")
            + correlation("c1", "Corr", ("r1", True), ("r2", False), ("r3", False))
        )
        analysis = classify(body)

        assert analysis.pattern is ReceivePattern.CONVOY
        assert analysis.primary_receive.oid == "r1"
        assert [r.oid for r in analysis.secondary_receives] == ["r2", "r3"]
        assert analysis.requires_session_support
        assert analysis.total_receive_count == 3
        assert "2 correlated receive(s)" in analysis.migration_warnings[0]


class TestMultipleActivations:

    def test_listen_first_to_complete(self):
        body = el("Listen",
                  el("Task", receive("r1", activate=True)),
                  el("Task", receive("r2", activate=True)),
                  oid="l1")
        analysis = classify(body)

        assert analysis.pattern is ReceivePattern.LISTEN_FIRST_TO_COMPLETE
        assert analysis.requires_timeout_handling
        assert analysis.is_valid
        assert [r.oid for r in analysis.secondary_receives] == ["r2"]

    def test_receives_in_different_listens_are_invalid(self):
        body = (
            el("Listen", el("Task", receive("r1", activate=True)), oid="l1")
            + el("Listen", el("Task", receive("r2", activate=True)), oid="l2")
        )
        assert classify(body).pattern is ReceivePattern.INVALID

    def test_parallel_all_must_complete(self):
        body = el("Parallel",
                  el("ParallelBranch", receive("r1", activate=True)),
                  el("ParallelBranch", receive("r2", activate=True)),
                  oid="p1")
        analysis = classify(body)

        assert analysis.pattern is ReceivePattern.PARALLEL_ALL_MUST_COMPLETE
        assert not analysis.is_valid
        assert "Parallel branches" in analysis.migration_error

    def test_sequential_is_invalid(self):
        analysis = classify(receive("r1", activate=True) + send("s1") + receive("r2", activate=True))

        assert analysis.pattern is ReceivePattern.INVALID
        assert not analysis.is_valid
        assert "2 sequential activating Receive shapes" in analysis.migration_error
        assert analysis.to_dict()["pattern"] == "Invalid"
        assert analysis.to_dict()["secondary_receives"] == ["Receive"]
