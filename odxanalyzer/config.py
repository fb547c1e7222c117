"""Configuration for the orchestration migration analyzer"""

import copy
from pathlib import Path
from typing import Any, Dict, Optional, Union
import logging

import yaml

from odxanalyzer.errors import ConfigError

logger = logging.getLogger(__name__)

# ===========================================
# Source Format
# ===========================================
# Source files carry a designer XML segment followed by generated code.
# The segment starts at the XML declaration and ends before the sentinel.

DESIGNER_NAMESPACE = "http://schemas.microsoft.com/BizTalk/2003/DesignerData"
NAMESPACE_PREFIX = "om"
XML_DECLARATION_MARKER = "<?xml"
DESIGNER_DATA_SENTINEL = "#endif"
SOURCE_PATTERN = "*.odx"

# Paths from the document root to the orchestration sections
MODULE_PATH = "/om:MetaModel/om:Element[@Type='Module']"
SERVICE_PATH = MODULE_PATH + "/om:Element[@Type='ServiceDeclaration']"
SERVICE_BODY_PATH = SERVICE_PATH + "/om:Element[@Type='ServiceBody']"

# ===========================================
# Shape Builder Settings
# ===========================================

DEFAULT_LOOP_ITEM_VARIABLE = "item"
POLICY_NAME_MAX_LENGTH = 40
RULES_ENGINE_ACTION_PREFIX = "Execute_Rules_Engine"

# Elements that are consumed by their owner's builder (or are pure metadata)
# and therefore never become nodes of their own.
NON_SHAPE_ELEMENT_TYPES = {
    "TransactionAttribute",
    "MessageRef",
    "MessagePartRef",
    "StatementRef",
    "IteratorVariable",
    "LogicalBindingAttribute",
    "PhysicalBindingAttribute",
    "DirectBindingAttribute",
    "WebPortBindingAttribute",
}

# ===========================================
# Gap Analysis
# ===========================================

SUPPORTED_SHAPES = {
    "Receive", "Send", "Construct", "Transform", "MessageAssignment",
    "VariableAssignment", "Expression", "Decide", "If", "Else",
    "Loop", "Parallel", "Scope", "Catch", "CatchException",
    "Throw", "Terminate", "Suspend", "Call", "Start",
    "Task", "Listen", "Delay", "While", "Until",
    "AtomicTransaction", "LongRunningTransaction", "Compensation",
    "Compensate", "CallRules", "CallPolicy", "Group",
    # Kinds the shape builder models natively under their normalized tag
    "Switch", "ForEach", "StartOrchestration", "ParallelBranch",
    "CorrelationDeclaration", "VariableDeclaration",
}

PARTIALLY_SUPPORTED_SHAPES = {
    "CallRules", "CallPolicy", "Compensation", "Compensate",
    "AtomicTransaction", "LongRunningTransaction",
}

# Boolean feature flags set by a direct (case-insensitive) shape-type match
FEATURE_SHAPE_TYPES = {
    "has_correlation_sets": {"correlationdeclaration", "initializecorrelation", "followscorrelation"},
    "has_dynamic_ports": {"dynamicport"},
    "has_transactions": {"atomictransaction", "longrunningtransaction"},
    "has_exception_handling": {"catch", "catchexception"},
    "has_business_rules": {"callrules", "callpolicy"},
    "has_compensation": {"compensation", "compensate"},
    "has_loops": {"loop", "foreach", "while", "until"},
    "has_parallel": {"parallel"},
    "has_listen": {"listen"},
    "has_delay": {"delay"},
    "has_call_orchestration": {"call", "start", "startorchestration"},
    "has_transform": {"transform"},
}

# Integration pattern heuristics, evaluated on tree-wide shape counts
PATTERN_THRESHOLDS = {
    "aggregator": {"min_receives": 2, "min_constructs_or_transforms": 1},
    "content_based_routing": {"min_decides": 1, "min_sends": 2},
    "scatter_gather": {"min_parallels": 1, "min_sends": 2, "min_receives": 2},
    "message_broker": {"min_receives": 2, "min_decides": 1, "min_sends": 2},
}

UNSUPPORTED_EXAMPLE_LIMIT = 3

# Complexity tiers by number of distinct shape types in a file
COMPLEXITY_TIERS = {
    "simple": 5,    # fewer than 5 shape types
    "medium": 10,   # 5-9 shape types; 10+ is complex
}
MOST_COMPLEX_LIMIT = 10

# Prioritized recommendation catalogue, keyed by the report file list that triggers it.
# Each text is formatted with {count}.
RECOMMENDATIONS = [
    ("files_with_business_rules", "P0 - Business Rules Engine Support",
     "{count} files use CallRules. Implement a rules engine integration in the target workflow."),
    ("files_with_correlation", "P0 - Advanced Correlation Support",
     "{count} files use correlation sets. Map correlation to stateful workflow state management."),
    ("files_with_convoy", "P1 - Convoy Pattern Support",
     "{count} files use convoy patterns. Implement sequential/parallel convoy conversion using session-enabled queues."),
    ("files_with_dynamic_ports", "P1 - Dynamic Port Support",
     "{count} files use dynamic ports. Implement late-binding connector selection."),
    ("files_with_compensation", "P1 - Compensation Logic Support",
     "{count} files use compensation. Implement compensating transactions using scope error handlers."),
    ("files_with_transactions", "P2 - Transaction Scope Support",
     "{count} files use transactions. Document transaction boundary conversion to scopes with error handling."),
    ("files_with_aggregator", "P2 - Aggregator Pattern",
     "{count} files implement aggregator pattern. Convert using stateful workflows with session-enabled queues for correlation and aggregation."),
    ("files_with_content_based_routing", "P2 - Content-Based Routing",
     "{count} files use content-based routing. Implement using switch/condition actions with expression-based routing logic."),
    ("files_with_scatter_gather", "P2 - Scatter-Gather Pattern",
     "{count} files implement scatter-gather. Convert using parallel branches for fan-out and a compose step for fan-in."),
    ("files_with_message_broker", "P2 - Message Broker Pattern",
     "{count} files implement message broker. Consider topics with filtered subscriptions for routing."),
]

HYBRID_DEPLOYMENT_NOTE = (
    "P3 - Hybrid Deployment Option: Consider a hybrid (self-hosted) deployment model "
    "if regulations, data residency or latency require running workflows on-premises."
)

# Keys a YAML override file may set
OVERRIDABLE_KEYS = {
    "supported_shapes",
    "partially_supported_shapes",
    "unsupported_example_limit",
    "source_pattern",
    "pattern_thresholds",
}


def get_config() -> Dict[str, Any]:
    """Get full configuration dictionary"""
    return {
        "designer_namespace": DESIGNER_NAMESPACE,
        "xml_declaration_marker": XML_DECLARATION_MARKER,
        "designer_data_sentinel": DESIGNER_DATA_SENTINEL,
        "source_pattern": SOURCE_PATTERN,
        "supported_shapes": set(SUPPORTED_SHAPES),
        "partially_supported_shapes": set(PARTIALLY_SUPPORTED_SHAPES),
        "feature_shape_types": copy.deepcopy(FEATURE_SHAPE_TYPES),
        "pattern_thresholds": copy.deepcopy(PATTERN_THRESHOLDS),
        "unsupported_example_limit": UNSUPPORTED_EXAMPLE_LIMIT,
        "complexity_tiers": dict(COMPLEXITY_TIERS),
        "recommendations": list(RECOMMENDATIONS),
    }


def load_config(path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load configuration, applying overrides from a YAML file.

    Args:
        path: Optional YAML file. Missing path means defaults only.

    Returns:
        Configuration dictionary in the same shape as get_config()
    """
    config = get_config()
    if path is None:
        return config

    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            overrides = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}", str(path)) from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {path}: {e}", str(path)) from e

    if not isinstance(overrides, dict):
        raise ConfigError(f"Config file {path} must contain a mapping", str(path))

    unknown = set(overrides) - OVERRIDABLE_KEYS
    if unknown:
        raise ConfigError(f"Unknown config keys in {path}: {', '.join(sorted(unknown))}", str(path))

    for key, value in overrides.items():
        if key in ("supported_shapes", "partially_supported_shapes"):
            if not isinstance(value, list) or not all(isinstance(s, str) for s in value):
                raise ConfigError(f"'{key}' in {path} must be a list of shape type names", str(path))
            config[key] = set(value)
        elif key == "pattern_thresholds":
            _apply_thresholds(config["pattern_thresholds"], value, path)
        elif key == "unsupported_example_limit":
            if not _is_int(value) or value < 0:
                raise ConfigError(f"'{key}' in {path} must be a non-negative integer", str(path))
            config[key] = value
        else:
            if not isinstance(value, str) or not value:
                raise ConfigError(f"'{key}' in {path} must be a non-empty string", str(path))
            config[key] = value

    logger.info(f"Loaded configuration overrides from {path}: {', '.join(sorted(overrides))}")
    return config


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _apply_thresholds(thresholds: Dict[str, Dict[str, int]], overrides, path: Path):
    """Merge per-pattern threshold overrides, rejecting unknown names and non-integer values"""
    if not isinstance(overrides, dict):
        raise ConfigError(f"'pattern_thresholds' in {path} must be a mapping of patterns", str(path))

    for pattern, values in overrides.items():
        if pattern not in thresholds:
            raise ConfigError(f"Unknown pattern '{pattern}' in {path}", str(path))
        if not isinstance(values, dict):
            raise ConfigError(f"Thresholds for '{pattern}' in {path} must be a mapping", str(path))
        for name, value in values.items():
            if name not in thresholds[pattern]:
                raise ConfigError(f"Unknown threshold '{name}' for pattern '{pattern}' in {path}", str(path))
            if not _is_int(value) or value < 0:
                raise ConfigError(
                    f"Threshold '{pattern}.{name}' in {path} must be a non-negative integer", str(path)
                )
        thresholds[pattern].update(values)
