"""CLI interface for the orchestration migration analyzer"""

import click
import json
from pathlib import Path
from typing import Optional
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

from odxanalyzer import __version__
from odxanalyzer.config import load_config
from odxanalyzer.diagnostics import diagnose as render_diagnostics
from odxanalyzer.errors import ConfigError, OdxError
from odxanalyzer.gap_analyzer import GapAnalyzer, format_report, save_report_json
from odxanalyzer.pattern_analyzer import OrchestrationAnalyzer
from odxanalyzer.static_analysis import OrchestrationParser


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", is_flag=True, default=False, help="Show parser trace output")
def main(verbose: bool):
    """odxanalyzer - Orchestration model builder and migration gap analyzer

    Parses orchestration (.odx) files into a typed control-flow model and
    classifies the constructs that need attention before migration.
    """
    if verbose:
        logging.getLogger("odxanalyzer").setLevel(logging.DEBUG)


@main.command()
@click.argument("odx_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", type=click.Path(), help="Path to output model JSON file")
def parse(odx_file: str, output: Optional[str]):
    """Parse one orchestration and print its model as JSON"""
    try:
        model = OrchestrationParser().parse_file(odx_file)
    except OdxError as e:
        click.echo(f"[ERROR] {e}")
        return

    data = json.dumps(model.to_dict(), indent=2)
    if output:
        output_path = Path(output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(data)
        click.echo(f"[OK] Model for {model.full_name} saved to: {output_path}")
    else:
        click.echo(data)


@main.command()
@click.argument("odx_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--config", "config_path", type=click.Path(exists=True), help="YAML configuration overrides")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the result as JSON")
def analyze(odx_file: str, config_path: Optional[str], as_json: bool):
    """Analyze one orchestration for unsupported shapes and patterns"""
    try:
        config = load_config(config_path)
    except ConfigError as e:
        click.echo(f"[ERROR] {e}")
        return

    result = OrchestrationAnalyzer(config).analyze_file(odx_file)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    if not result.parsed_successfully:
        click.echo(f"[ERROR] {result.file_name}: {result.parse_error}")
        return

    click.echo(f"[OK] {result.orchestration} ({len(result.shape_types)} shape types)")
    click.echo(f"  Ports: {result.port_count}, Messages: {result.message_count}, "
               f"Correlation sets: {result.correlation_set_count}")
    click.echo(f"  Receive pattern: {result.receive_pattern}")
    if result.receive_pattern_error:
        click.echo(f"  [ERROR] {result.receive_pattern_error}")

    click.echo("\n  Shape counts:")
    for shape_type, count in sorted(result.shape_type_counts.items(), key=lambda kv: kv[1], reverse=True):
        click.echo(f"    {shape_type:<30} {count:>5}")

    if result.unsupported_shapes:
        click.echo(f"\n  [WARN] Unsupported: {', '.join(result.unsupported_shapes)}")
    if result.partially_supported_shapes:
        click.echo(f"  [WARN] Partially supported: {', '.join(result.partially_supported_shapes)}")

    patterns = [name for name, hit in (
        ("Aggregator", result.has_aggregator_pattern),
        ("Content-Based Routing", result.has_content_based_routing),
        ("Scatter-Gather", result.has_scatter_gather),
        ("Message Broker", result.has_message_broker),
        ("Convoy", result.has_convoy),
    ) if hit]
    if patterns:
        click.echo(f"  Patterns: {', '.join(patterns)}")

    for warning in result.warnings:
        click.echo(f"  [WARN] {warning}")


@main.command()
@click.argument("directory", type=click.Path(exists=True, file_okay=False))
@click.option("--output", type=click.Path(), help="Path to output JSON report")
@click.option("--pattern", default=None, help="Glob pattern for orchestration files (default: *.odx)")
@click.option("--config", "config_path", type=click.Path(exists=True), help="YAML configuration overrides")
@click.option("--progress/--no-progress", default=True, help="Show a progress bar")
def scan(directory: str, output: Optional[str], pattern: Optional[str],
         config_path: Optional[str], progress: bool):
    """Run the gap analysis over every orchestration in a directory"""
    try:
        config = load_config(config_path)
    except ConfigError as e:
        click.echo(f"[ERROR] {e}")
        return

    click.echo(f"Scanning {directory}...")
    report = GapAnalyzer(config).analyze_directory(directory, pattern=pattern, progress=progress)

    for result in report.file_details:
        if result.parsed_successfully:
            click.echo(f"  [OK] {result.file_name} ({len(result.shape_types)} shape types)")
        else:
            click.echo(f"  [ERROR] {result.file_name}: {result.parse_error}")

    click.echo(format_report(report, config))

    if output:
        output_path = save_report_json(report, output)
        click.echo(f"\nDetailed report saved to: {output_path}")


@main.command()
@click.argument("odx_file", type=click.Path(exists=True, dir_okay=False))
def diagnose(odx_file: str):
    """Print the complete shape hierarchy of one orchestration"""
    try:
        model = OrchestrationParser().parse_file(odx_file)
    except OdxError as e:
        click.echo(f"[ERROR] {e}")
        return

    click.echo(render_diagnostics(model))


if __name__ == "__main__":
    main()
