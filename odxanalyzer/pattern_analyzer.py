"""Per-file pattern analysis

Walks one finished shape tree and classifies its migration risk:
- shape-type counts and supported / partial / unsupported classification
- feature flags by shape type
- convoy detection and integration-pattern heuristics
- receive-pattern classification
"""

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import logging

from odxanalyzer.config import get_config
from odxanalyzer.errors import OdxError
from odxanalyzer.models import OrchestrationModel, PortDirection, ShapeKind
from odxanalyzer.static_analysis import OrchestrationParser, analyze_receive_pattern

logger = logging.getLogger(__name__)

UNKNOWN_SHAPE_TYPE = "Unknown"


@dataclass
class AnalysisResult:
    """Analysis record for one orchestration file"""
    file_name: str
    file_size_bytes: int = 0
    parsed_successfully: bool = False
    parse_error: str = ""
    error_kind: str = ""
    orchestration: str = ""
    shape_types: List[str] = field(default_factory=list)  # distinct, first-seen order
    shape_type_counts: Dict[str, int] = field(default_factory=dict)
    unsupported_shapes: List[str] = field(default_factory=list)
    partially_supported_shapes: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    # Feature flags
    has_correlation_sets: bool = False
    has_dynamic_ports: bool = False
    has_transactions: bool = False
    has_exception_handling: bool = False
    has_business_rules: bool = False
    has_compensation: bool = False
    has_loops: bool = False
    has_parallel: bool = False
    has_listen: bool = False
    has_delay: bool = False
    has_call_orchestration: bool = False
    has_transform: bool = False
    has_solicit_response: bool = False
    has_convoy: bool = False

    # Entity counts
    port_count: int = 0
    message_count: int = 0
    correlation_set_count: int = 0

    # Integration patterns
    has_aggregator_pattern: bool = False
    has_content_based_routing: bool = False
    has_scatter_gather: bool = False
    has_message_broker: bool = False

    receive_pattern: str = ""
    receive_pattern_error: str = ""

    def to_dict(self) -> Dict:
        return asdict(self)


class OrchestrationAnalyzer:
    """
    Classify the shapes of one orchestration against the supported set.

    The analyzer only reads the model; it never mutates the tree.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 parser: Optional[OrchestrationParser] = None):
        self.config = config or get_config()
        self.parser = parser or OrchestrationParser()
        self.supported = {s.lower() for s in self.config["supported_shapes"]}
        self.partial = {s.lower() for s in self.config["partially_supported_shapes"]}
        self.feature_types = self.config["feature_shape_types"]
        self.thresholds = self.config["pattern_thresholds"]

    def analyze_file(self, file_path: Union[str, Path]) -> AnalysisResult:
        """
        Parse and analyze one file.

        Parse failures are captured on the result rather than raised.
        """
        file_path = Path(file_path)
        result = AnalysisResult(file_name=file_path.name)
        try:
            result.file_size_bytes = file_path.stat().st_size
        except OSError:
            result.file_size_bytes = 0

        try:
            model = self.parser.parse_file(file_path)
        except OdxError as e:
            result.parse_error = str(e)
            result.error_kind = type(e).__name__
            logger.warning(f"Failed to parse {file_path.name}: {e}")
            return result

        return self.analyze_model(model, result=result)

    def analyze_model(self, model: OrchestrationModel, file_name: str = "",
                      result: Optional[AnalysisResult] = None) -> AnalysisResult:
        """Analyze an already built model"""
        if result is None:
            result = AnalysisResult(file_name=file_name or model.source)
        result.parsed_successfully = True
        result.orchestration = model.full_name

        shapes = list(model.all_shapes())
        for shape in shapes:
            self._classify(shape.shape_type or UNKNOWN_SHAPE_TYPE, result)
            if shape.kind is ShapeKind.FALLBACK:
                result.warnings.append(f"{shape.name}: {shape.payload.details}")

        result.port_count = len(model.ports)
        result.message_count = len(model.messages)
        result.correlation_set_count = sum(
            1 for s in shapes if s.kind is ShapeKind.CORRELATION_DECLARATION
        )
        if result.correlation_set_count > 0:
            result.has_correlation_sets = True

        activating = sum(1 for s in shapes if s.is_activating_receive)
        result.has_convoy = activating > 1 or result.correlation_set_count > 1

        result.has_solicit_response = any(
            p.direction in (PortDirection.SEND_RECEIVE, PortDirection.RECEIVE_SEND)
            for p in model.ports
        )

        self._detect_design_patterns(result)

        receive_analysis = analyze_receive_pattern(model)
        result.receive_pattern = receive_analysis.pattern.value
        result.receive_pattern_error = receive_analysis.migration_error
        result.warnings.extend(receive_analysis.migration_warnings)

        logger.debug(
            f"Analyzed {result.file_name}: {len(result.shape_types)} shape types, "
            f"{len(result.unsupported_shapes)} unsupported"
        )
        return result

    def _classify(self, shape_type: str, result: AnalysisResult):
        if shape_type not in result.shape_type_counts:
            result.shape_types.append(shape_type)
            result.shape_type_counts[shape_type] = 0
        result.shape_type_counts[shape_type] += 1

        lowered = shape_type.lower()
        if lowered not in self.supported and shape_type != UNKNOWN_SHAPE_TYPE:
            if shape_type not in result.unsupported_shapes:
                result.unsupported_shapes.append(shape_type)
        elif lowered in self.partial:
            if shape_type not in result.partially_supported_shapes:
                result.partially_supported_shapes.append(shape_type)

        for flag, types in self.feature_types.items():
            if lowered in types:
                setattr(result, flag, True)

    def _count(self, result: AnalysisResult, *shape_types: str) -> int:
        wanted = {t.lower() for t in shape_types}
        return sum(n for t, n in result.shape_type_counts.items() if t.lower() in wanted)

    def _detect_design_patterns(self, result: AnalysisResult):
        """Integration-pattern heuristics on tree-wide shape counts"""
        receives = self._count(result, "Receive")
        sends = self._count(result, "Send")
        decides = self._count(result, "Decide", "If")
        parallels = self._count(result, "Parallel")
        constructs_or_transforms = self._count(result, "Construct", "Transform")

        t = self.thresholds["aggregator"]
        result.has_aggregator_pattern = (
            receives >= t["min_receives"]
            and result.has_correlation_sets
            and constructs_or_transforms >= t["min_constructs_or_transforms"]
        )

        t = self.thresholds["content_based_routing"]
        result.has_content_based_routing = decides >= t["min_decides"] and sends >= t["min_sends"]

        t = self.thresholds["scatter_gather"]
        result.has_scatter_gather = (
            parallels >= t["min_parallels"]
            and sends >= t["min_sends"]
            and receives >= t["min_receives"]
        )

        t = self.thresholds["message_broker"]
        result.has_message_broker = (
            receives >= t["min_receives"]
            and decides >= t["min_decides"]
            and sends >= t["min_sends"]
        )
