"""Shape hierarchy diagnostics

Renders a built orchestration tree as indented text, with decide branches,
switch cases, listen branches and construct inner shapes laid out under
their owner.
"""

from collections import Counter
from typing import Dict, List

from odxanalyzer.models import (
    ConstructPayload,
    DecidePayload,
    ListenPayload,
    OrchestrationModel,
    ShapeNode,
    ShapeTree,
    SwitchPayload,
)

EXPRESSION_PREVIEW = 60


def count_shapes(model: OrchestrationModel) -> Dict[str, int]:
    """Total count per shape type, nested shapes included"""
    return dict(Counter(s.shape_type for s in model.all_shapes()))


def render_tree(model: OrchestrationModel) -> List[str]:
    lines = []
    for node in sorted(model.top_level_shapes(), key=lambda n: n.sequence):
        _render(model.tree, node, 0, lines)
    return lines


def _preview(text: str) -> str:
    return text[:EXPRESSION_PREVIEW] if text else "(no expression)"


def _render(tree: ShapeTree, node: ShapeNode, indent: int, lines: List[str]):
    prefix = "  " * indent
    lines.append(f"{prefix}[{node.shape_type}] {node.name} [{node.unique_id}] [Seq:{node.sequence}]")

    payload = node.payload
    if isinstance(payload, DecidePayload):
        lines.append(f"{prefix}  Expression: {_preview(payload.expression)}")
        for label, branch in (("TRUE", payload.true_branch), ("FALSE", payload.false_branch)):
            if branch:
                lines.append(f"{prefix}  {label} branch ({len(branch)} shapes):")
                _render_all(tree, branch, indent + 2, lines)
    elif isinstance(payload, SwitchPayload):
        lines.append(f"{prefix}  Expression: {_preview(payload.expression)}")
        for key, shapes in payload.cases.items():
            lines.append(f"{prefix}  CASE '{key}' ({len(shapes)} shapes):")
            _render_all(tree, shapes, indent + 2, lines)
        if payload.default_case:
            lines.append(f"{prefix}  DEFAULT ({len(payload.default_case)} shapes):")
            _render_all(tree, payload.default_case, indent + 2, lines)
    elif isinstance(payload, ListenPayload):
        for index, branch in enumerate(payload.branches, 1):
            lines.append(f"{prefix}  BRANCH {index} ({len(branch)} shapes):")
            _render_all(tree, branch, indent + 2, lines)
    elif isinstance(payload, ConstructPayload):
        if payload.constructed_messages:
            lines.append(f"{prefix}  Constructs: {', '.join(payload.constructed_messages)}")
        _render_all(tree, payload.inner_shapes, indent + 1, lines)

    _render_all(tree, node.children, indent + 1, lines)


def _render_all(tree: ShapeTree, handles: List[int], indent: int, lines: List[str]):
    for child in sorted(tree.resolve(handles), key=lambda n: n.sequence):
        _render(tree, child, indent, lines)


def diagnose(model: OrchestrationModel) -> str:
    """Full diagnostic text: header, per-type totals and the shape hierarchy"""
    rule = "=" * 80
    lines = [rule, f"=== Orchestration Diagnostic: {model.full_name} ===", rule,
             f"Top-Level Shapes: {len(model.shapes)}",
             f"Service-Level Declarations: {len(model.service_shapes())}",
             "", "=== TOTAL SHAPE COUNTS (including nested) ==="]

    for shape_type, count in sorted(count_shapes(model).items()):
        lines.append(f"  {shape_type}: {count}")

    lines += ["", "=== COMPLETE SHAPE HIERARCHY ==="]
    lines += render_tree(model)
    lines.append(rule)
    return "\n".join(lines)
