"""Receive pattern classification

The target engine accepts exactly one trigger per workflow, so the topology
of activating receives decides how an orchestration can be migrated.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional
import logging

from odxanalyzer.models import OrchestrationModel, ShapeKind, ShapeNode

logger = logging.getLogger(__name__)


class ReceivePattern(Enum):
    CALLABLE = "Callable"                       # no activating receive
    SINGLE_TRIGGER = "SingleTrigger"
    CONVOY = "Convoy"                           # activation initializes, others follow
    LISTEN_FIRST_TO_COMPLETE = "ListenFirstToComplete"
    PARALLEL_ALL_MUST_COMPLETE = "ParallelAllMustComplete"
    INVALID = "Invalid"                         # sequential activating receives


INVALID_PATTERNS = {ReceivePattern.INVALID, ReceivePattern.PARALLEL_ALL_MUST_COMPLETE}


@dataclass
class ReceivePatternAnalysis:
    pattern: ReceivePattern
    primary_receive: Optional[ShapeNode] = None
    secondary_receives: List[ShapeNode] = field(default_factory=list)
    requires_session_support: bool = False
    requires_request_trigger: bool = False
    requires_timeout_handling: bool = False
    migration_error: str = ""
    migration_warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.pattern not in INVALID_PATTERNS

    @property
    def total_receive_count(self) -> int:
        return (1 if self.primary_receive is not None else 0) + len(self.secondary_receives)

    def to_dict(self) -> Dict:
        return {
            "pattern": self.pattern.value,
            "primary_receive": self.primary_receive.name if self.primary_receive else None,
            "secondary_receives": [r.name for r in self.secondary_receives],
            "requires_session_support": self.requires_session_support,
            "requires_request_trigger": self.requires_request_trigger,
            "requires_timeout_handling": self.requires_timeout_handling,
            "migration_error": self.migration_error,
            "migration_warnings": list(self.migration_warnings),
            "is_valid": self.is_valid,
        }


def analyze_receive_pattern(model: OrchestrationModel) -> ReceivePatternAnalysis:
    """
    Classify the receive topology of an orchestration.

    Args:
        model: Fully built orchestration model

    Returns:
        ReceivePatternAnalysis with the primary (trigger) receive first
    """
    tree = model.tree
    receives = [s for s in model.all_shapes() if s.kind is ShapeKind.RECEIVE]
    activating = [r for r in receives if r.payload.activate]

    logger.debug(
        f"[RECEIVE-ANALYSIS] Orchestration: {model.full_name}, "
        f"Total receives: {len(receives)}, Activating: {len(activating)}"
    )

    if not activating:
        return ReceivePatternAnalysis(
            pattern=ReceivePattern.CALLABLE,
            requires_request_trigger=True,
            migration_warnings=[
                "No activating Receive shapes found. Workflow will use a request trigger (callable workflow)."
            ],
        )

    if len(activating) == 1:
        receive = activating[0]
        if receive.payload.initializes_correlation_sets:
            following = [
                r for r in receives
                if not r.payload.activate and r.payload.follows_correlation_sets
            ]
            if following:
                return ReceivePatternAnalysis(
                    pattern=ReceivePattern.CONVOY,
                    primary_receive=receive,
                    secondary_receives=following,
                    requires_session_support=True,
                    migration_warnings=[
                        f"Convoy pattern detected with {len(following)} correlated receive(s). "
                        "Requires session-enabled messaging or a custom correlation implementation."
                    ],
                )
        return ReceivePatternAnalysis(pattern=ReceivePattern.SINGLE_TRIGGER, primary_receive=receive)

    count = len(activating)
    listen_parents = [tree.find_ancestor(r, ShapeKind.LISTEN) for r in activating]
    if all(p is not None for p in listen_parents) and len({p.handle for p in listen_parents}) == 1:
        return ReceivePatternAnalysis(
            pattern=ReceivePattern.LISTEN_FIRST_TO_COMPLETE,
            primary_receive=activating[0],
            secondary_receives=activating[1:],
            requires_timeout_handling=True,
            migration_warnings=[
                f"Listen shape with {count} activating receives detected. "
                "The first receive maps to the trigger and the others to switch/timeout actions. "
                "First-to-complete cancellation of the other branches is not native to the target engine."
            ],
        )

    if all(tree.find_ancestor(r, ShapeKind.PARALLEL) is not None for r in activating):
        return ReceivePatternAnalysis(
            pattern=ReceivePattern.PARALLEL_ALL_MUST_COMPLETE,
            primary_receive=activating[0],
            secondary_receives=activating[1:],
            migration_error=(
                f"INVALID PATTERN: {count} activating Receive shapes in Parallel branches detected. "
                "A workflow can only have ONE trigger. "
                "Recommendation: Split into multiple workflows or use correlation-based sequential receives."
            ),
        )

    return ReceivePatternAnalysis(
        pattern=ReceivePattern.INVALID,
        primary_receive=activating[0],
        secondary_receives=activating[1:],
        migration_error=(
            f"INVALID PATTERN: {count} sequential activating Receive shapes detected. "
            "A workflow can only have ONE trigger. "
            "Recommendation: Redesign to use correlation (convoy pattern) or split into multiple workflows."
        ),
    )
