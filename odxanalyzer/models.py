"""Orchestration model: declarations plus the typed control-flow tree

The control-flow tree is an arena. Every ShapeNode lives in ShapeTree.nodes
and is addressed by its integer handle; parent and child links are handles.
Per-kind data sits in a payload record, so a node is a shared header plus
one payload from the closed set below.
"""

from dataclasses import dataclass, field, fields, is_dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple


class ShapeKind(Enum):
    """Closed set of control-flow node kinds"""
    RECEIVE = "Receive"
    SEND = "Send"
    CONSTRUCT = "Construct"
    TRANSFORM = "Transform"
    MESSAGE_ASSIGNMENT = "MessageAssignment"
    VARIABLE_ASSIGNMENT = "VariableAssignment"
    WHILE = "While"
    UNTIL = "Until"
    LOOP = "Loop"
    CALL = "Call"
    START = "StartOrchestration"
    CORRELATION_DECLARATION = "CorrelationDeclaration"
    DECIDE = "Decide"
    SWITCH = "Switch"
    LISTEN = "Listen"
    SCOPE = "Scope"
    TERMINATE = "Terminate"
    EXPRESSION = "Expression"
    DELAY = "Delay"
    COMPENSATE = "Compensate"
    GROUP = "Group"
    PARALLEL = "Parallel"
    PARALLEL_BRANCH = "ParallelBranch"
    TASK = "Task"
    CATCH = "Catch"
    COMPENSATION = "Compensation"
    ATOMIC_TRANSACTION = "AtomicTransaction"
    LONG_RUNNING_TRANSACTION = "LongRunningTransaction"
    VARIABLE_DECLARATION = "VariableDeclaration"
    CALL_RULES = "CallRules"
    FALLBACK = "Fallback"


class PortDirection(Enum):
    """Communication direction of a port"""
    NONE = "None"
    RECEIVE = "Receive"
    SEND = "Send"
    RECEIVE_SEND = "ReceiveSend"  # request-response
    SEND_RECEIVE = "SendReceive"  # solicit-response


class BindingKind(Enum):
    LOGICAL = "Logical"
    PHYSICAL = "Physical"
    DIRECT = "Direct"
    WEB = "Web"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class MessageModel:
    """Message variable declared on the orchestration"""
    name: str
    type: str
    direction: str  # "In", "Out", "InOut" or empty


@dataclass
class OperationModel:
    """Port operation. Message types are names, resolved lazily by callers."""
    name: str
    operation_type: str  # "OneWay" or "RequestResponse"
    request_message_type: str = ""
    response_message_type: str = ""
    fault_message_type: str = ""


@dataclass
class PortTypeModel:
    name: str
    modifier: str = ""
    operations: List[OperationModel] = field(default_factory=list)


@dataclass
class PortModel:
    """Port declaration. Adapter/transport fields are filled by a later binding merge."""
    name: str
    port_type_reference: str
    direction: PortDirection = PortDirection.NONE
    binding_kind: BindingKind = BindingKind.UNKNOWN
    adapter_name: str = ""
    transport_type: str = ""
    address: str = ""
    folder_path: str = ""
    file_mask: str = ""
    polling_interval_seconds: Optional[int] = None
    receive_pipeline_name: str = ""
    send_pipeline_name: str = ""

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "port_type_reference": self.port_type_reference,
            "direction": self.direction.value,
            "binding_kind": self.binding_kind.value,
            "adapter_name": self.adapter_name,
            "transport_type": self.transport_type,
            "address": self.address,
            "folder_path": self.folder_path,
            "file_mask": self.file_mask,
            "polling_interval_seconds": self.polling_interval_seconds,
            "receive_pipeline_name": self.receive_pipeline_name,
            "send_pipeline_name": self.send_pipeline_name,
        }


@dataclass(frozen=True)
class StatementRef:
    """Reference from a correlation declaration to the statement using it"""
    statement_oid: str
    initializes: bool


# ===========================================
# Per-kind payloads
# ===========================================
# Fields holding node handles are tagged with metadata={"nodes": True}.

def _nodes(default_factory=list):
    return field(default_factory=default_factory, metadata={"nodes": True})


@dataclass
class ReceivePayload:
    port_name: str = ""
    message_name: str = ""
    operation_name: str = ""
    operation_message_name: str = ""
    activate: bool = False
    initializes_correlation_sets: List[str] = field(default_factory=list)
    follows_correlation_sets: List[str] = field(default_factory=list)


@dataclass
class SendPayload:
    port_name: str = ""
    message_name: str = ""
    operation_name: str = ""
    operation_message_name: str = ""


@dataclass
class ConstructPayload:
    constructed_messages: List[str] = field(default_factory=list)
    inner_shapes: List[int] = _nodes()


@dataclass
class TransformPayload:
    class_name: str = ""
    input_messages: List[str] = field(default_factory=list)
    output_messages: List[str] = field(default_factory=list)


@dataclass
class ExpressionPayload:
    """Assignment, While, Until and Expression shapes"""
    expression: str = ""


@dataclass
class LoopPayload:
    loop_type: str = "Loop"
    collection_expression: str = ""
    item_variable: str = ""


@dataclass
class InvokePayload:
    """Call and Start orchestration shapes"""
    invokee: str = ""


@dataclass
class CorrelationPayload:
    correlation_type_ref: str = ""
    statement_refs: List[StatementRef] = field(default_factory=list)


@dataclass
class DecidePayload:
    expression: str = ""
    true_branch: List[int] = _nodes()
    false_branch: List[int] = _nodes()


@dataclass
class SwitchPayload:
    expression: str = ""
    cases: Dict[str, List[int]] = _nodes(dict)
    default_case: List[int] = _nodes()


@dataclass
class ListenPayload:
    branches: List[List[int]] = _nodes()


@dataclass
class TerminatePayload:
    """Throw, Suspend and Terminate shapes"""
    error_message: str = ""


@dataclass
class DelayPayload:
    delay_expression: str = ""


@dataclass
class CompensatePayload:
    target: str = ""


@dataclass
class CatchPayload:
    exception_type: str = "System.Exception"
    exception_variable: str = "ex"


@dataclass
class VariableDeclarationPayload:
    var_type: str = ""
    use_default: str = ""


@dataclass
class CallRulesPayload:
    policy_name: str = ""


@dataclass
class FallbackPayload:
    details: str = ""


@dataclass
class ShapeNode:
    """One control-flow node: shared header plus a per-kind payload"""
    handle: int
    kind: ShapeKind
    shape_type: str
    oid: str
    name: str
    sequence: int
    context: str
    payload: Any = None
    parent: Optional[int] = None
    children: List[int] = field(default_factory=list)

    @property
    def unique_id(self) -> str:
        """Deterministic key: identifier (or type), parsing context and local sequence"""
        return f"{self.oid or self.shape_type}@{self.context}#{self.sequence}"

    @property
    def is_activating_receive(self) -> bool:
        return self.kind is ShapeKind.RECEIVE and self.payload.activate

    def payload_slots(self) -> List[Tuple[str, List[int]]]:
        """Branch/case/listen/inner payload lists, labelled, in declaration order"""
        p = self.payload
        if isinstance(p, DecidePayload):
            return [("true", p.true_branch), ("false", p.false_branch)]
        if isinstance(p, SwitchPayload):
            slots = [(f"case:{key}", shapes) for key, shapes in p.cases.items()]
            slots.append(("default", p.default_case))
            return slots
        if isinstance(p, ListenPayload):
            return [(f"branch[{i}]", shapes) for i, shapes in enumerate(p.branches, 1)]
        if isinstance(p, ConstructPayload):
            return [("inner", p.inner_shapes)]
        return []


class ShapeTree:
    """Arena of shape nodes plus the global identifier index"""

    def __init__(self):
        self.nodes: List[ShapeNode] = []
        self.oid_index: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[ShapeNode]:
        return iter(self.nodes)

    def __getitem__(self, handle: int) -> ShapeNode:
        return self.nodes[handle]

    def new_node(self, kind: ShapeKind, shape_type: str, oid: str, name: str,
                 sequence: int, context: str, payload: Any = None) -> ShapeNode:
        node = ShapeNode(
            handle=len(self.nodes),
            kind=kind,
            shape_type=shape_type,
            oid=oid,
            name=name,
            sequence=sequence,
            context=context,
            payload=payload,
        )
        self.nodes.append(node)
        return node

    def register(self, node: ShapeNode) -> bool:
        """Index node by identifier. First registration wins."""
        if not node.oid or node.oid in self.oid_index:
            return False
        self.oid_index[node.oid] = node.handle
        return True

    def lookup(self, oid: str) -> Optional[ShapeNode]:
        handle = self.oid_index.get(oid)
        return self.nodes[handle] if handle is not None else None

    def attach(self, child: ShapeNode, parent: ShapeNode):
        """Link child under parent's generic child list"""
        child.parent = parent.handle
        parent.children.append(child.handle)

    def adopt(self, handles: List[int], owner: ShapeNode):
        """Re-parent payload shapes onto owner without listing them as generic children"""
        for handle in handles:
            self.nodes[handle].parent = owner.handle

    def parent_of(self, node: ShapeNode) -> Optional[ShapeNode]:
        return self.nodes[node.parent] if node.parent is not None else None

    def children_of(self, node: ShapeNode) -> List[ShapeNode]:
        return [self.nodes[h] for h in node.children]

    def resolve(self, handles: List[int]) -> List[ShapeNode]:
        return [self.nodes[h] for h in handles]

    def walk(self, handles: List[int]) -> Iterator[ShapeNode]:
        """Pre-order walk: node, its generic children, then its payload slots"""
        for handle in handles:
            node = self.nodes[handle]
            yield node
            yield from self.walk(node.children)
            for _, slot in node.payload_slots():
                yield from self.walk(slot)

    def ancestors(self, node: ShapeNode) -> Iterator[ShapeNode]:
        current = self.parent_of(node)
        while current is not None:
            yield current
            current = self.parent_of(current)

    def find_ancestor(self, node: ShapeNode, kind: ShapeKind) -> Optional[ShapeNode]:
        return next((a for a in self.ancestors(node) if a.kind is kind), None)

    def node_to_dict(self, handle: int) -> Dict:
        node = self.nodes[handle]
        data = {
            "oid": node.oid,
            "name": node.name,
            "shape_type": node.shape_type,
            "kind": node.kind.value,
            "sequence": node.sequence,
            "unique_id": node.unique_id,
        }
        if node.payload is not None and is_dataclass(node.payload):
            for f in fields(node.payload):
                value = getattr(node.payload, f.name)
                if f.metadata.get("nodes"):
                    value = self._nodes_to_dict(value)
                elif f.name == "statement_refs":
                    value = [{"statement_oid": r.statement_oid, "initializes": r.initializes}
                             for r in value]
                elif isinstance(value, list):
                    value = list(value)
                data[f.name] = value
        data["children"] = [self.node_to_dict(h) for h in node.children]
        return data

    def _nodes_to_dict(self, value):
        if isinstance(value, dict):
            return {key: self._nodes_to_dict(v) for key, v in value.items()}
        if value and isinstance(value[0], list):
            return [self._nodes_to_dict(v) for v in value]
        return [self.node_to_dict(h) for h in value]


@dataclass
class OrchestrationModel:
    """Root aggregate handed to the downstream mapper"""
    namespace: str = ""
    name: str = ""
    messages: List[MessageModel] = field(default_factory=list)
    port_types: List[PortTypeModel] = field(default_factory=list)
    ports: List[PortModel] = field(default_factory=list)
    shapes: List[int] = field(default_factory=list)  # top-level body, in order
    service_variables: List[int] = field(default_factory=list)
    service_correlations: List[int] = field(default_factory=list)
    tree: ShapeTree = field(default_factory=ShapeTree)
    source: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.namespace}.{self.name}" if self.namespace else self.name

    def top_level_shapes(self) -> List[ShapeNode]:
        return self.tree.resolve(self.shapes)

    def service_shapes(self) -> List[ShapeNode]:
        """Declarations made beside the body (variables, correlation sets)"""
        return self.tree.resolve(self.service_variables + self.service_correlations)

    def all_shapes(self) -> Iterator[ShapeNode]:
        """Service-level declarations, then every node reachable from the body"""
        return self.tree.walk(self.service_variables + self.service_correlations + self.shapes)

    def find_message_type(self, logical_name: str) -> str:
        """Schema type for a message variable, or the name itself when undeclared"""
        message = next((m for m in self.messages if m.name == logical_name), None)
        return message.type if message else logical_name

    def find_port(self, name: str) -> Optional[PortModel]:
        lowered = name.lower()
        return next((p for p in self.ports if p.name.lower() == lowered), None)

    def to_dict(self) -> Dict:
        return {
            "namespace": self.namespace,
            "name": self.name,
            "full_name": self.full_name,
            "messages": [
                {"name": m.name, "type": m.type, "direction": m.direction}
                for m in self.messages
            ],
            "port_types": [
                {
                    "name": pt.name,
                    "modifier": pt.modifier,
                    "operations": [
                        {
                            "name": op.name,
                            "operation_type": op.operation_type,
                            "request_message_type": op.request_message_type,
                            "response_message_type": op.response_message_type,
                            "fault_message_type": op.fault_message_type,
                        }
                        for op in pt.operations
                    ],
                }
                for pt in self.port_types
            ],
            "ports": [p.to_dict() for p in self.ports],
            "service_variables": [self.tree.node_to_dict(h) for h in self.service_variables],
            "service_correlations": [self.tree.node_to_dict(h) for h in self.service_correlations],
            "shapes": [self.tree.node_to_dict(h) for h in self.shapes],
        }
