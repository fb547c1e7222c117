"""Branch/Case Resolver

Parses the sub-regions of Decide, Switch and Listen shapes into their
payload slots. Every branch, case and listen branch gets an isolated
ParseContext, so sequence numbers restart at zero inside each of them.
"""

from typing import List, Optional, Tuple, TYPE_CHECKING

from odxanalyzer.models import (
    DecidePayload,
    ListenPayload,
    ShapeKind,
    ShapeNode,
    SwitchPayload,
)

if TYPE_CHECKING:
    from .shape_parser import ParseContext, ShapeTreeParser

DECISION_BRANCH = "DecisionBranch"
LISTEN_BRANCH_TYPES = ("Task", "ListenBranch")
DEFAULT_CASE_MARKERS = ("default", "else")


class BranchResolver:
    """Branch disambiguation for the shapes that own their substructure"""

    def __init__(self, parser: "ShapeTreeParser"):
        self.parser = parser

    @property
    def reader(self):
        return self.parser.reader

    @property
    def tree(self):
        return self.parser.tree

    @property
    def log(self):
        return self.parser.log

    # ===========================================
    # Decide
    # ===========================================

    def build_decide(self, element, context: "ParseContext") -> ShapeNode:
        """
        Resolve the true/false branches of a Decide shape.

        The first branch (document order) carrying a condition becomes the
        true branch and supplies the condition. Without any condition the
        branches are taken positionally. A condition may also sit beside the
        branch containers, or be promoted from an Expression shape inside
        the true branch.
        """
        payload = DecidePayload()
        node = self.parser.new_node(element, context, ShapeKind.DECIDE, payload=payload)
        r = self.reader

        branches = r.children(element, DECISION_BRANCH)
        self.log.debug(f"[PARSE] Decision '{node.name}' has {len(branches)} branches")

        if not branches:
            payload.expression = self._sibling_expression(element)
            return node

        rule_branch = None
        for index, branch in enumerate(branches):
            expression = self.parser.expression_of(branch)
            if expression.strip():
                rule_branch = branch
                payload.expression = expression
                self.log.debug(f"[PARSE]   Found expression in branch {index}: {expression[:60]}")
                break

        if rule_branch is None:
            payload.expression = self._sibling_expression(element)

        if rule_branch is not None:
            true_branch = rule_branch
            false_branch = next((b for b in branches if b is not rule_branch), None)
        else:
            self.log.debug("[PARSE]   No expression found - using branch order")
            true_branch = branches[0]
            false_branch = branches[1] if len(branches) > 1 else None

        base = region_key(node)
        payload.true_branch = self._parse_region(true_branch, context, f"{base}.true", node)
        if false_branch is not None:
            payload.false_branch = self._parse_region(false_branch, context, f"{base}.false", node)

        if not payload.expression.strip():
            promoted = next(
                (s for s in self.tree.resolve(payload.true_branch) if s.kind is ShapeKind.EXPRESSION),
                None,
            )
            if promoted is not None:
                payload.expression = promoted.payload.expression
                self.log.debug(f"[PARSE]   Using expression from shape: {promoted.name}")

        return node

    def _sibling_expression(self, element) -> str:
        sibling = self.reader.first_child(element, "Expression")
        if sibling is None:
            return ""
        return self.reader.prop(sibling, "Expression")

    # ===========================================
    # Switch
    # ===========================================

    def build_switch(self, element, context: "ParseContext") -> ShapeNode:
        """Resolve keyed case slots plus the default slot of a Switch shape"""
        payload = SwitchPayload(expression=self.parser.expression_of(element))
        node = self.parser.new_node(element, context, ShapeKind.SWITCH, payload=payload)
        self.log.debug(f"[PARSE] Switch '{node.name}' with expression: {payload.expression[:60]}")

        base = region_key(node)
        for index, case in enumerate(self.reader.children(element, DECISION_BRANCH), 1):
            is_default, key = self.case_key(case)
            label = "default" if is_default else f"case[{index}]"
            shapes = self._parse_region(case, context, f"{base}.{label}", node)

            if is_default:
                payload.default_case.extend(shapes)
                self.log.debug(f"[PARSE]   Default case parsed: {len(shapes)} shapes")
            else:
                payload.cases.setdefault(key, []).extend(shapes)
                self.log.debug(f"[PARSE]   Case '{key}' parsed: {len(shapes)} shapes")

        return node

    def case_key(self, case) -> Tuple[bool, Optional[str]]:
        """
        Classify a case container.

        Returns:
            (True, None) for the default case, else (False, key) where key is
            the non-empty case expression.
        """
        name = self.reader.prop(case, "Name")
        value = self.parser.expression_of(case)
        lowered = name.lower()
        if not value.strip() or any(marker in lowered for marker in DEFAULT_CASE_MARKERS):
            return True, None
        return False, value

    # ===========================================
    # Listen
    # ===========================================

    def build_listen(self, element, context: "ParseContext") -> ShapeNode:
        """One payload slot per Task/ListenBranch container, in document order"""
        payload = ListenPayload()
        name = self.reader.prop(element, "Name") or "Listen"
        node = self.parser.new_node(element, context, ShapeKind.LISTEN, name=name, payload=payload)

        base = region_key(node)
        for index, branch in enumerate(self.reader.children(element, *LISTEN_BRANCH_TYPES), 1):
            self.log.debug(f"[PARSE] Parsing Listen branch {index}")
            payload.branches.append(
                self._parse_region(branch, context, f"{base}.branch[{index}]", node)
            )

        return node

    # ===========================================
    # Helpers
    # ===========================================

    def _parse_region(self, container, context: "ParseContext", suffix: str,
                      owner: ShapeNode) -> List[int]:
        """Parse a region into a fresh context and hang its shapes on owner's payload"""
        shapes = self.parser.parse_body(container, context.branch(suffix))
        self.tree.adopt(shapes, owner)
        return shapes


def region_key(node: ShapeNode) -> str:
    """Path segment naming the regions owned by node"""
    return f"{node.oid or node.name or node.shape_type}#{node.sequence}"
