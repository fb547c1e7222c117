"""Directory-scope gap analysis

Runs the per-file analyzer over every orchestration in a directory and
aggregates the results into a prioritized migration report.
"""

import json
import threading
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
import logging

from tqdm import tqdm

from odxanalyzer.config import HYBRID_DEPLOYMENT_NOTE, MOST_COMPLEX_LIMIT, get_config
from odxanalyzer.pattern_analyzer import AnalysisResult, OrchestrationAnalyzer

logger = logging.getLogger(__name__)

# Per-file flag -> report file list
FLAG_FILE_LISTS = {
    "has_correlation_sets": "files_with_correlation",
    "has_dynamic_ports": "files_with_dynamic_ports",
    "has_transactions": "files_with_transactions",
    "has_business_rules": "files_with_business_rules",
    "has_compensation": "files_with_compensation",
    "has_convoy": "files_with_convoy",
    "has_aggregator_pattern": "files_with_aggregator",
    "has_content_based_routing": "files_with_content_based_routing",
    "has_scatter_gather": "files_with_scatter_gather",
    "has_message_broker": "files_with_message_broker",
}


@dataclass
class GapAnalysisReport:
    directory: str = ""
    total_files_analyzed: int = 0
    successfully_parsed: int = 0
    failed_to_parse: int = 0
    cancelled: bool = False
    shape_type_frequency: Dict[str, int] = field(default_factory=dict)
    unsupported_shape_frequency: Dict[str, int] = field(default_factory=dict)
    unsupported_shape_examples: Dict[str, List[str]] = field(default_factory=dict)
    files_with_correlation: List[str] = field(default_factory=list)
    files_with_dynamic_ports: List[str] = field(default_factory=list)
    files_with_transactions: List[str] = field(default_factory=list)
    files_with_business_rules: List[str] = field(default_factory=list)
    files_with_compensation: List[str] = field(default_factory=list)
    files_with_convoy: List[str] = field(default_factory=list)
    files_with_aggregator: List[str] = field(default_factory=list)
    files_with_content_based_routing: List[str] = field(default_factory=list)
    files_with_scatter_gather: List[str] = field(default_factory=list)
    files_with_message_broker: List[str] = field(default_factory=list)
    complexity_tiers: Dict[str, List[str]] = field(default_factory=dict)
    most_complex_files: List[str] = field(default_factory=list)
    recommended_features: List[str] = field(default_factory=list)
    file_details: List[AnalysisResult] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        if not self.total_files_analyzed:
            return 0.0
        return self.successfully_parsed * 100.0 / self.total_files_analyzed

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["success_rate"] = round(self.success_rate, 1)
        return data


class GapAnalyzer:
    """Aggregate per-file analyses into a directory report"""

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 analyzer: Optional[OrchestrationAnalyzer] = None):
        self.config = config or get_config()
        self.analyzer = analyzer or OrchestrationAnalyzer(self.config)

    def analyze_directory(self, directory: Union[str, Path], pattern: Optional[str] = None,
                          progress: bool = False,
                          cancel_event: Optional[threading.Event] = None) -> GapAnalysisReport:
        """
        Analyze every matching file in a directory, in name order.

        Args:
            directory: Directory holding orchestration files
            pattern: Glob pattern, defaults to the configured source pattern
            progress: Show a progress bar
            cancel_event: Checked between files; when set the scan stops early

        Returns:
            GapAnalysisReport with recommendations
        """
        directory = Path(directory)
        pattern = pattern or self.config["source_pattern"]
        files = sorted(p for p in directory.glob(pattern) if p.is_file())

        report = GapAnalysisReport(directory=str(directory))
        logger.info(f"Found {len(files)} orchestration files in {directory}")

        for file_path in tqdm(files, desc="Analyzing", unit="file", disable=not progress):
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(f"Scan cancelled after {report.total_files_analyzed} files")
                report.cancelled = True
                break

            try:
                result = self.analyzer.analyze_file(file_path)
            except Exception as e:
                logger.warning(f"Unexpected failure analyzing {file_path.name}: {e}")
                result = AnalysisResult(
                    file_name=file_path.name,
                    parse_error=str(e),
                    error_kind=type(e).__name__,
                )

            self.add_result(report, result)

        self.finalize(report)
        return report

    def add_result(self, report: GapAnalysisReport, result: AnalysisResult):
        """Fold one file's result into the running totals"""
        report.file_details.append(result)
        report.total_files_analyzed += 1

        if not result.parsed_successfully:
            report.failed_to_parse += 1
            return

        report.successfully_parsed += 1
        for shape_type, count in result.shape_type_counts.items():
            report.shape_type_frequency[shape_type] = report.shape_type_frequency.get(shape_type, 0) + count

        limit = self.config["unsupported_example_limit"]
        for shape_type in result.unsupported_shapes:
            report.unsupported_shape_frequency[shape_type] = report.unsupported_shape_frequency.get(shape_type, 0) + 1
            examples = report.unsupported_shape_examples.setdefault(shape_type, [])
            if len(examples) < limit:
                examples.append(result.file_name)

        for flag, list_name in FLAG_FILE_LISTS.items():
            if getattr(result, flag):
                getattr(report, list_name).append(result.file_name)

    def finalize(self, report: GapAnalysisReport):
        """Complexity tiers and recommendations, computed once all files are in"""
        tiers = self.config["complexity_tiers"]
        parsed = [r for r in report.file_details if r.parsed_successfully]
        report.complexity_tiers = {
            "simple": [r.file_name for r in parsed if len(r.shape_types) < tiers["simple"]],
            "medium": [r.file_name for r in parsed
                       if tiers["simple"] <= len(r.shape_types) < tiers["medium"]],
            "complex": [r.file_name for r in parsed if len(r.shape_types) >= tiers["medium"]],
        }
        complex_files = [r for r in parsed if len(r.shape_types) >= tiers["medium"]]
        complex_files.sort(key=lambda r: len(r.shape_types), reverse=True)
        report.most_complex_files = [r.file_name for r in complex_files[:MOST_COMPLEX_LIMIT]]

        report.recommended_features = self.recommendations(report)

    def recommendations(self, report: GapAnalysisReport) -> List[str]:
        """Prioritized recommendation list driven by the flags that fired"""
        recommendations = []
        for list_name, title, template in self.config["recommendations"]:
            count = len(getattr(report, list_name))
            if count > 0:
                recommendations.append(f"{title}: {template.format(count=count)}")

        recommendations.append(HYBRID_DEPLOYMENT_NOTE)

        by_frequency = sorted(report.unsupported_shape_frequency.items(), key=lambda kv: kv[1], reverse=True)
        for shape_type, count in by_frequency:
            examples = ", ".join(report.unsupported_shape_examples.get(shape_type, []))
            recommendations.append(
                f"P? - Support for '{shape_type}' shape: Found {count} occurrences in {examples}"
            )
        return recommendations


def save_report_json(report: GapAnalysisReport, output_path: Union[str, Path]) -> Path:
    """Write the full report as indented JSON"""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(report.to_dict(), f, indent=2)
    logger.info(f"Detailed report saved to: {output_path}")
    return output_path


def format_report(report: GapAnalysisReport, config: Optional[Dict[str, Any]] = None,
                  top_n: int = 20) -> str:
    """Human-readable summary of a directory report"""
    config = config or get_config()
    supported = {s.lower() for s in config["supported_shapes"]}
    partial = {s.lower() for s in config["partially_supported_shapes"]}
    rule = "=" * 80
    thin = "-" * 80

    lines = [rule, "ANALYSIS SUMMARY", rule,
             f"Total files analyzed: {report.total_files_analyzed}",
             f"Successfully parsed: {report.successfully_parsed}",
             f"Failed to parse: {report.failed_to_parse}",
             f"Parse success rate: {report.success_rate:.1f}%"]
    if report.cancelled:
        lines.append("Scan was cancelled before all files were analyzed")

    lines += ["", thin, "PATTERN DETECTION", thin,
              f"Correlation Sets: {len(report.files_with_correlation)} files",
              f"Dynamic Ports: {len(report.files_with_dynamic_ports)} files",
              f"Transactions: {len(report.files_with_transactions)} files",
              f"Business Rules: {len(report.files_with_business_rules)} files",
              f"Compensation: {len(report.files_with_compensation)} files",
              f"Convoy Pattern: {len(report.files_with_convoy)} files",
              "", thin, "DESIGN PATTERNS", thin,
              f"Aggregator: {len(report.files_with_aggregator)} files",
              f"Content-Based Routing: {len(report.files_with_content_based_routing)} files",
              f"Scatter-Gather: {len(report.files_with_scatter_gather)} files",
              f"Message Broker: {len(report.files_with_message_broker)} files"]

    lines += ["", thin, f"TOP {top_n} SHAPE TYPES BY FREQUENCY", thin]
    top = sorted(report.shape_type_frequency.items(), key=lambda kv: kv[1], reverse=True)[:top_n]
    for shape_type, count in top:
        mark = "[OK]" if shape_type.lower() in supported else "[!!]"
        suffix = " (partial)" if shape_type.lower() in partial else ""
        lines.append(f"{mark} {shape_type:<30} {count:>5} occurrences{suffix}")

    if report.unsupported_shape_frequency:
        lines += ["", thin, "UNSUPPORTED SHAPES", thin]
        for shape_type, count in sorted(report.unsupported_shape_frequency.items(),
                                        key=lambda kv: kv[1], reverse=True):
            lines.append(f"[!!] {shape_type:<30} {count:>5} occurrences")
            lines.append(f"  Examples: {', '.join(report.unsupported_shape_examples.get(shape_type, []))}")

    if report.recommended_features:
        lines += ["", rule, "RECOMMENDED FEATURES & ENHANCEMENTS", rule]
        for feature in report.recommended_features:
            lines.append(f"* {feature}")

    tiers = report.complexity_tiers
    lines += ["", rule, "DETAILED FILE ANALYSIS", rule,
              f"Simple orchestrations (< 5 shape types): {len(tiers.get('simple', []))}",
              f"Medium orchestrations (5-9 shape types): {len(tiers.get('medium', []))}",
              f"Complex orchestrations (10+ shape types): {len(tiers.get('complex', []))}"]

    if report.most_complex_files:
        details = {r.file_name: r for r in report.file_details}
        lines.append("Most Complex Orchestrations:")
        for name in report.most_complex_files:
            r = details[name]
            lines.append(f"  * {name} ({len(r.shape_types)} shape types, {r.file_size_bytes // 1024}KB)")
            if r.unsupported_shapes:
                lines.append(f"    Unsupported: {', '.join(r.unsupported_shapes)}")

    lines.append(rule)
    return "\n".join(lines)
