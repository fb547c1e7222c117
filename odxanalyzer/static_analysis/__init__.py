"""Static Analysis Module for orchestration source files

Turns the designer XML embedded in an orchestration file into a typed
OrchestrationModel:
- Source extraction and generic element access
- Shape-tree parsing with branch/case resolution
- Correlation binding and receive-pattern classification
"""

from .source_extractor import SourceExtractor
from .element_reader import ElementReader
from .shape_parser import ParseContext, ShapeTreeParser
from .branch_resolver import BranchResolver
from .correlation_resolver import resolve_correlations
from .orchestration_parser import OrchestrationParser, parse_odx
from .receive_patterns import ReceivePattern, ReceivePatternAnalysis, analyze_receive_pattern

__all__ = [
    "SourceExtractor",
    "ElementReader",
    "ParseContext",
    "ShapeTreeParser",
    "BranchResolver",
    "resolve_correlations",
    "OrchestrationParser",
    "parse_odx",
    "ReceivePattern",
    "ReceivePatternAnalysis",
    "analyze_receive_pattern",
]
