"""Shape-Tree Parser

Recursive-descent builder turning designer XML elements into the typed
control-flow tree. Dispatches on the element `Type`, numbers nodes within
their parsing context, links parents and fills the identifier index.
"""

import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional
import logging

from odxanalyzer.config import (
    DEFAULT_LOOP_ITEM_VARIABLE,
    NON_SHAPE_ELEMENT_TYPES,
    POLICY_NAME_MAX_LENGTH,
    RULES_ENGINE_ACTION_PREFIX,
)
from odxanalyzer.models import (
    CallRulesPayload,
    CatchPayload,
    CompensatePayload,
    ConstructPayload,
    CorrelationPayload,
    DelayPayload,
    ExpressionPayload,
    FallbackPayload,
    InvokePayload,
    LoopPayload,
    ReceivePayload,
    SendPayload,
    ShapeKind,
    ShapeNode,
    ShapeTree,
    StatementRef,
    TerminatePayload,
    TransformPayload,
    VariableDeclarationPayload,
)
from .branch_resolver import BranchResolver, region_key
from .element_reader import ElementReader

logger = logging.getLogger(__name__)

# Builders that parse their own substructure into payloads
NO_GENERIC_RECURSION = {
    ShapeKind.DECIDE,
    ShapeKind.SWITCH,
    ShapeKind.LISTEN,
    ShapeKind.CONSTRUCT,
    ShapeKind.MESSAGE_ASSIGNMENT,
}

RULES_SHAPE_TYPES = {"callrules", "callpolicy"}


@dataclass
class ParseContext:
    """One sequence-numbering scope (body, decide branch, switch case, listen branch)"""
    path: str
    counter: int = 0

    def next_sequence(self) -> int:
        value = self.counter
        self.counter += 1
        return value

    def branch(self, suffix: str) -> "ParseContext":
        """Fresh isolated context nested under this one"""
        return ParseContext(path=f"{self.path}/{suffix}")


class ShapeTreeParser:
    """
    Build shape nodes from the children of a container element.

    The tree (arena + identifier index) is shared across every call, while
    each ParseContext carries its own counter.
    """

    def __init__(self, reader: ElementReader, tree: ShapeTree,
                 event_logger: Optional[logging.Logger] = None):
        self.reader = reader
        self.tree = tree
        self.log = event_logger or logger
        self.branches = BranchResolver(self)

        self._builders: Dict[str, Callable] = {
            "Receive": self._build_receive,
            "Send": self._build_send,
            "Construct": self._build_construct,
            "Transform": self._build_transform,
            "MessageAssignment": self._build_message_assignment,
            "VariableAssignment": self._expression_builder(ShapeKind.VARIABLE_ASSIGNMENT),
            "While": self._expression_builder(ShapeKind.WHILE),
            "Until": self._expression_builder(ShapeKind.UNTIL),
            "Expression": self._expression_builder(ShapeKind.EXPRESSION),
            "Loop": self._build_loop,
            "ForEach": self._build_loop,
            "Call": self._build_call,
            "Exec": self._build_start,
            "Start": self._build_start,
            "StartOrchestration": self._build_start,
            "CorrelationDeclaration": self._build_correlation,
            "Decision": self.branches.build_decide,
            "Decide": self.branches.build_decide,
            "If": self.branches.build_decide,
            "IfElse": self.branches.build_decide,
            "Switch": self.branches.build_switch,
            "Listen": self.branches.build_listen,
            "Scope": self._plain_builder(ShapeKind.SCOPE),
            "Throw": self._build_throw,
            "Suspend": self._build_suspend,
            "Terminate": self._build_terminate,
            "Delay": self._build_delay,
            "Compensate": self._build_compensate,
            "Group": self._plain_builder(ShapeKind.GROUP),
            "Parallel": self._plain_builder(ShapeKind.PARALLEL),
            "ParallelBranch": self._plain_builder(ShapeKind.PARALLEL_BRANCH, "ParallelBranch"),
            "Task": self._plain_builder(ShapeKind.TASK, "Task"),
            "Catch": self._build_catch,
            "CatchException": self._build_catch,
            "Compensation": self._plain_builder(ShapeKind.COMPENSATION),
            "AtomicTransaction": self._plain_builder(ShapeKind.ATOMIC_TRANSACTION),
            "LongRunningTransaction": self._plain_builder(ShapeKind.LONG_RUNNING_TRANSACTION),
            "VariableDeclaration": self._build_variable_declaration,
            "MessageDeclaration": self._build_variable_declaration,
        }
        self._builders_folded = {k.lower(): v for k, v in self._builders.items()}

    # ===========================================
    # Recursive descent
    # ===========================================

    def parse_body(self, container, context: ParseContext,
                   parent: Optional[ShapeNode] = None) -> List[int]:
        """
        Parse every child Element of container into nodes.

        Args:
            container: XML element whose children are shapes
            context: Parsing context supplying sequence numbers
            parent: Node the new shapes hang under (None for a context root)

        Returns:
            Handles of the nodes created directly under container, in order
        """
        created = []
        for element in self.reader.children(container):
            node = self.build_shape(element, context)
            if node is None:
                continue

            if parent is not None:
                self.tree.attach(node, parent)
            created.append(node.handle)

            recurse = node.kind not in NO_GENERIC_RECURSION
            self.log.debug(f"[PARSE] Shape {node.name} ({node.shape_type}) - Will recurse: {recurse}")
            if recurse:
                self.parse_body(element, context, node)

        return created

    def build_shape(self, element, context: ParseContext) -> Optional[ShapeNode]:
        """Dispatch one element to its builder. Returns None for metadata elements."""
        shape_type = self.reader.element_type(element)
        self.log.debug(f"[PARSE] Found shape type: {shape_type}, OID: {self.reader.oid(element)}")

        if shape_type.lower() in RULES_SHAPE_TYPES:
            return self._build_call_rules(element, context)

        if shape_type in NON_SHAPE_ELEMENT_TYPES:
            self.log.debug(f"[PARSE] Skipping metadata element: {shape_type}")
            return None

        builder = self._builders.get(shape_type) or self._builders_folded.get(shape_type.lower())
        if builder is None:
            return self._build_fallback(element, context)
        return builder(element, context)

    def new_node(self, element, context: ParseContext, kind: ShapeKind,
                 shape_type: Optional[str] = None, name: Optional[str] = None,
                 payload=None) -> ShapeNode:
        """Allocate and index a node, taking the next sequence value from context.

        Owners are indexed before their regions are parsed, so an identifier
        always maps to the first node that declared it.
        """
        if name is None:
            name = self.reader.prop(element, "Name")
        node = self.tree.new_node(
            kind=kind,
            shape_type=shape_type or kind.value,
            oid=self.reader.oid(element),
            name=name,
            sequence=context.next_sequence(),
            context=context.path,
            payload=payload,
        )
        self.tree.register(node)
        return node

    def expression_of(self, element) -> str:
        """Expression as a direct property, else inside a nested Expression element"""
        value = self.reader.prop(element, "Expression")
        if value.strip():
            return value
        nested = self.reader.first_child(element, "Expression")
        if nested is not None:
            return self.reader.prop(nested, "Expression")
        return ""

    # ===========================================
    # Per-kind builders
    # ===========================================

    def _plain_builder(self, kind: ShapeKind, default_name: str = ""):
        def build(element, context):
            name = self.reader.prop(element, "Name") or default_name
            return self.new_node(element, context, kind, name=name)
        return build

    def _expression_builder(self, kind: ShapeKind):
        def build(element, context):
            payload = ExpressionPayload(expression=self.reader.prop(element, "Expression"))
            return self.new_node(element, context, kind, payload=payload)
        return build

    def _build_receive(self, element, context):
        r = self.reader
        payload = ReceivePayload(
            port_name=r.prop(element, "PortName"),
            message_name=r.prop(element, "MessageName"),
            operation_name=r.prop(element, "OperationName"),
            operation_message_name=r.prop(element, "OperationMessageName"),
            activate=r.prop(element, "Activate") == "True",
        )
        return self.new_node(element, context, ShapeKind.RECEIVE, payload=payload)

    def _build_send(self, element, context):
        r = self.reader
        payload = SendPayload(
            port_name=r.prop(element, "PortName"),
            message_name=r.prop(element, "MessageName"),
            operation_name=r.prop(element, "OperationName"),
            operation_message_name=r.prop(element, "OperationMessageName"),
        )
        return self.new_node(element, context, ShapeKind.SEND, payload=payload)

    def _build_construct(self, element, context):
        """Construct owns its Transform and MessageAssignment shapes as inline payload"""
        payload = ConstructPayload()
        for msg_ref in self.reader.children(element, "MessageRef"):
            message = self.reader.prop(msg_ref, "Ref")
            if message:
                payload.constructed_messages.append(message)

        node = self.new_node(element, context, ShapeKind.CONSTRUCT, payload=payload)

        inner_context = context.branch(f"{region_key(node)}.construct")
        inner_elements = (self.reader.children(element, "Transform")
                          + self.reader.children(element, "MessageAssignment"))
        for inner in inner_elements:
            if self.reader.element_type(inner) == "Transform":
                shape = self._build_transform(inner, inner_context)
            else:
                shape = self._build_message_assignment(inner, inner_context)
            shape.parent = node.handle
            payload.inner_shapes.append(shape.handle)

        return node

    def _build_transform(self, element, context):
        """
        Map class plus message references.

        With exactly two referenced messages the second is the output and
        the first the input; any other count leaves all of them as inputs.
        """
        payload = TransformPayload(class_name=self.reader.prop(element, "ClassName"))
        for part_ref in self.reader.children(element, "MessagePartRef"):
            message = self.reader.prop(part_ref, "MessageRef")
            if message:
                payload.input_messages.append(message)

        if len(payload.input_messages) == 2:
            first, second = payload.input_messages
            payload.input_messages = [first]
            payload.output_messages = [second]

        return self.new_node(element, context, ShapeKind.TRANSFORM, payload=payload)

    def _build_message_assignment(self, element, context):
        payload = ExpressionPayload(expression=self.reader.prop(element, "Expression"))
        return self.new_node(element, context, ShapeKind.MESSAGE_ASSIGNMENT, payload=payload)

    def _build_loop(self, element, context):
        shape_type = self.reader.element_type(element)
        payload = LoopPayload(loop_type=shape_type)

        loop_expr = self.reader.first_child(element, "Expression")
        if loop_expr is not None:
            payload.collection_expression = self.reader.prop(loop_expr, "Expression")

        item_var = self.reader.eval(element, "om:Element[@Type='IteratorVariable']/om:Property[@Name='Name']/@Value")
        payload.item_variable = item_var or DEFAULT_LOOP_ITEM_VARIABLE

        return self.new_node(element, context, ShapeKind.LOOP, shape_type=shape_type, payload=payload)

    def _build_call(self, element, context):
        payload = InvokePayload(invokee=self.reader.prop(element, "Invokee"))
        return self.new_node(element, context, ShapeKind.CALL, payload=payload)

    def _build_start(self, element, context):
        payload = InvokePayload(invokee=self.reader.prop(element, "Invokee"))
        return self.new_node(element, context, ShapeKind.START, payload=payload)

    def _build_correlation(self, element, context):
        payload = CorrelationPayload(correlation_type_ref=self.reader.prop(element, "Type"))
        for stmt_ref in self.reader.children(element, "StatementRef"):
            payload.statement_refs.append(StatementRef(
                statement_oid=self.reader.prop(stmt_ref, "Ref"),
                initializes=self.reader.prop(stmt_ref, "Initializes") == "True",
            ))
        return self.new_node(element, context, ShapeKind.CORRELATION_DECLARATION, payload=payload)

    def _build_throw(self, element, context):
        payload = TerminatePayload(error_message=self.reader.first_prop(element, "Exception", "ExceptionType"))
        return self.new_node(element, context, ShapeKind.TERMINATE, shape_type="Throw", payload=payload)

    def _build_suspend(self, element, context):
        payload = TerminatePayload(error_message=self.reader.prop(element, "ErrorMessage") or "Suspended")
        return self.new_node(element, context, ShapeKind.TERMINATE, shape_type="Suspend", payload=payload)

    def _build_terminate(self, element, context):
        payload = TerminatePayload(error_message=self.reader.prop(element, "ErrorMessage"))
        return self.new_node(element, context, ShapeKind.TERMINATE, shape_type="Terminate", payload=payload)

    def _build_delay(self, element, context):
        payload = DelayPayload(delay_expression=self.reader.prop(element, "Expression"))
        return self.new_node(element, context, ShapeKind.DELAY, payload=payload)

    def _build_compensate(self, element, context):
        payload = CompensatePayload(target=self.reader.prop(element, "Target"))
        return self.new_node(element, context, ShapeKind.COMPENSATE, payload=payload)

    def _build_catch(self, element, context):
        r = self.reader
        payload = CatchPayload(
            exception_type=r.first_prop(element, "ExceptionType", "Exception") or "System.Exception",
            exception_variable=r.first_prop(element, "ExceptionName", "ExceptionVariable") or "ex",
        )
        shape_type = r.element_type(element)
        return self.new_node(element, context, ShapeKind.CATCH, shape_type=shape_type, payload=payload)

    def _build_variable_declaration(self, element, context):
        payload = VariableDeclarationPayload(
            var_type=self.reader.prop(element, "Type"),
            use_default=self.reader.prop(element, "UseDefaultConstructor"),
        )
        node = self.new_node(element, context, ShapeKind.VARIABLE_DECLARATION, payload=payload)
        if self.reader.element_type(element) == "MessageDeclaration":
            self.log.debug(f"[PARSE] Scope-level MessageDeclaration '{node.name}' parsed as VariableDeclaration")
        return node

    def _build_call_rules(self, element, context):
        policy = self.reader.first_prop(element, "Policy", "PolicyName", "Ruleset")
        name = self.reader.prop(element, "Name")
        if not name:
            name = f"{RULES_ENGINE_ACTION_PREFIX}_{safe_policy_segment(policy)}" if policy.strip() \
                else RULES_ENGINE_ACTION_PREFIX
        payload = CallRulesPayload(policy_name=policy)
        return self.new_node(element, context, ShapeKind.CALL_RULES, shape_type="CallRules",
                             name=name, payload=payload)

    def _build_fallback(self, element, context):
        shape_type = self.reader.element_type(element)
        self.log.warning(f"[PARSE] Unknown shape type: {shape_type}")
        payload = FallbackPayload(details=f"Unhandled shape type: {shape_type}")
        name = self.reader.prop(element, "Name") or f"Unknown_{shape_type}"
        return self.new_node(element, context, ShapeKind.FALLBACK, shape_type=shape_type,
                             name=name, payload=payload)


def safe_policy_segment(policy: str) -> str:
    """Alphanumeric characters of a policy name, capped for use in action names"""
    return re.sub(r'[^0-9A-Za-z]', '', policy)[:POLICY_NAME_MAX_LENGTH]
