"""Orchestration Parser

Builds the complete OrchestrationModel for one source file:
- module namespace and orchestration name
- message, port type and port declarations
- service-level variable and correlation declarations
- the control-flow tree of the service body
- correlation bindings onto receive shapes
"""

from pathlib import Path
from typing import Callable, Optional, Union
import logging

from odxanalyzer.config import MODULE_PATH, SERVICE_BODY_PATH, SERVICE_PATH
from odxanalyzer.errors import OdxError, SectionError, SemanticError
from odxanalyzer.models import (
    BindingKind,
    MessageModel,
    OperationModel,
    OrchestrationModel,
    PortDirection,
    PortModel,
    PortTypeModel,
)
from .correlation_resolver import resolve_correlations
from .element_reader import ElementReader
from .shape_parser import ParseContext, ShapeTreeParser
from .source_extractor import SourceExtractor

logger = logging.getLogger(__name__)

SERVICE_CONTEXT = "service"
SERVICE_SEQUENCE = -1

# Binding attribute element -> binding kind, in precedence order
BINDING_ATTRIBUTES = [
    ("LogicalBindingAttribute", BindingKind.LOGICAL),
    ("PhysicalBindingAttribute", BindingKind.PHYSICAL),
    ("DirectBindingAttribute", BindingKind.DIRECT),
    ("WebPortBindingAttribute", BindingKind.WEB),
]


def port_direction(modifier: str, signal: str) -> PortDirection:
    """Derive a port's direction from its PortModifier and Signal flags"""
    if modifier == "Implements":
        return PortDirection.RECEIVE if signal == "True" else PortDirection.RECEIVE_SEND
    if modifier == "Uses":
        return PortDirection.SEND_RECEIVE if signal == "True" else PortDirection.SEND
    return PortDirection.NONE


class OrchestrationParser:
    """
    Parse orchestration source files into OrchestrationModel instances.

    Each call builds a fresh tree; a parser instance can be reused across
    files.
    """

    def __init__(self, extractor: Optional[SourceExtractor] = None,
                 reader: Optional[ElementReader] = None,
                 event_logger: Optional[logging.Logger] = None):
        self.extractor = extractor or SourceExtractor()
        self.reader = reader or ElementReader()
        self.log = event_logger or logger

    def parse_file(self, file_path: Union[str, Path]) -> OrchestrationModel:
        file_path = Path(file_path)
        self.log.info(f"Parsing orchestration: {file_path.name}")
        root = self.extractor.load(file_path)
        return self.parse_document(root, file_path.name)

    def parse_text(self, raw: str, source: str = "") -> OrchestrationModel:
        """Parse raw file content (XML segment plus trailing generated code)"""
        root = self.extractor.load_text(raw, source)
        return self.parse_document(root, source)

    def parse_document(self, root, source: str = "") -> OrchestrationModel:
        """
        Build the model from an already parsed designer document.

        Raises:
            SemanticError: No orchestration name could be resolved
            SectionError: A declaration section or the shape tree failed to build
        """
        r = self.reader
        model = OrchestrationModel(
            namespace=r.eval(root, f"{MODULE_PATH}/om:Property[@Name='Name']/@Value"),
            name=r.eval(root, f"{SERVICE_PATH}/om:Property[@Name='Name']/@Value"),
            source=source,
        )
        if not model.name:
            raise SemanticError(
                f"Failed to extract orchestration name from '{source}'. The file structure may be invalid.",
                source,
            )

        tree = model.tree
        shape_parser = ShapeTreeParser(r, tree, self.log)

        self._section(model, "messages", lambda: self._parse_messages(root, model))
        self._parse_service_variables(root, model, shape_parser)
        self._section(model, "port types", lambda: self._parse_port_types(root, model))
        self._section(model, "ports", lambda: self._parse_ports(root, model))
        self._section(model, "correlations",
                      lambda: self._parse_service_correlations(root, model, shape_parser))

        body = r.select(root, SERVICE_BODY_PATH)
        if body:
            self._section(model, "shapes", lambda: self._parse_body(body[0], model, shape_parser))
            self._section(model, "correlations",
                          lambda: resolve_correlations(
                              tree, model.service_correlations + model.shapes, self.log))
        else:
            self.log.warning(f"No service body found in orchestration '{model.name}'")

        self.log.info(
            f"Parsed {model.full_name}: {len(model.messages)} messages, "
            f"{len(model.ports)} ports, {len(tree)} shapes"
        )
        return model

    def _section(self, model: OrchestrationModel, section: str, build: Callable):
        try:
            return build()
        except OdxError:
            raise
        except Exception as e:
            raise SectionError(model.name, section, e, model.source) from e

    # ===========================================
    # Declarations
    # ===========================================

    def _parse_messages(self, root, model: OrchestrationModel):
        r = self.reader
        for msg in r.select(root, f"{SERVICE_PATH}/om:Element[@Type='MessageDeclaration']"):
            name = r.prop(msg, "Name")
            if not name:
                continue
            model.messages.append(MessageModel(
                name=name,
                type=r.prop(msg, "Type"),
                direction=r.prop(msg, "ParamDirection"),
            ))

    def _parse_service_variables(self, root, model: OrchestrationModel, shape_parser: ShapeTreeParser):
        """Variables declared beside the body. Failures here are tolerated."""
        try:
            self._parse_service_level(root, model, shape_parser, "VariableDeclaration",
                                      model.service_variables)
        except Exception as e:
            self.log.warning(f"Failed to parse service-level variable declarations: {e}")

    def _parse_service_correlations(self, root, model: OrchestrationModel, shape_parser: ShapeTreeParser):
        self._parse_service_level(root, model, shape_parser, "CorrelationDeclaration",
                                  model.service_correlations)

    def _parse_service_level(self, root, model: OrchestrationModel, shape_parser: ShapeTreeParser,
                             element_type: str, target: list):
        context = ParseContext(path=SERVICE_CONTEXT)
        for element in self.reader.select(root, f"{SERVICE_PATH}/om:Element[@Type='{element_type}']"):
            if not self.reader.prop(element, "Name"):
                continue
            node = shape_parser.build_shape(element, context)
            node.sequence = SERVICE_SEQUENCE
            target.append(node.handle)
            self.log.debug(f"[PARSE] Collected service-level {element_type}: {node.name}")

    def _parse_port_types(self, root, model: OrchestrationModel):
        r = self.reader
        for pt in r.select(root, f"{MODULE_PATH}/om:Element[@Type='PortType']"):
            name = r.prop(pt, "Name")
            if not name:
                continue

            port_type = PortTypeModel(name=name, modifier=r.prop(pt, "TypeModifier"))
            for op in r.children(pt, "OperationDeclaration"):
                op_name = r.prop(op, "Name")
                if not op_name:
                    continue
                port_type.operations.append(OperationModel(
                    name=op_name,
                    operation_type=r.prop(op, "OperationType"),
                    request_message_type=self._message_ref(op, "Request"),
                    response_message_type=self._message_ref(op, "Response"),
                    fault_message_type=self._message_ref(op, "Fault"),
                ))
            model.port_types.append(port_type)

    def _message_ref(self, operation, role: str) -> str:
        return self.reader.eval(
            operation,
            f"om:Element[@Type='MessageRef' and om:Property[@Name='Name']/@Value='{role}']"
            "/om:Property[@Name='Ref']/@Value",
        )

    def _parse_ports(self, root, model: OrchestrationModel):
        r = self.reader
        for port in r.select(root, f"{SERVICE_PATH}/om:Element[@Type='PortDeclaration']"):
            name = r.prop(port, "Name")
            if not name:
                continue

            physical = r.first_child(port, "PhysicalBindingAttribute")
            web = r.first_child(port, "WebPortBindingAttribute")
            adapter = ""
            if physical is not None:
                adapter = r.first_prop(physical, "TransportType", "Adapter", "AdapterName")
            if not adapter and web is not None:
                adapter = r.prop(web, "TransportType")

            binding_kind = next(
                (kind for element_type, kind in BINDING_ATTRIBUTES if r.first_child(port, element_type) is not None),
                BindingKind.UNKNOWN,
            )

            model.ports.append(PortModel(
                name=name,
                port_type_reference=r.prop(port, "Type"),
                direction=port_direction(r.prop(port, "PortModifier"), r.prop(port, "Signal")),
                binding_kind=binding_kind,
                adapter_name=adapter,
                transport_type=adapter,
            ))

    # ===========================================
    # Control flow
    # ===========================================

    def _parse_body(self, body, model: OrchestrationModel, shape_parser: ShapeTreeParser):
        model.shapes = shape_parser.parse_body(body, ParseContext(path="body"))


def parse_odx(file_path: Union[str, Path]) -> OrchestrationModel:
    """Parse one orchestration file with default settings"""
    return OrchestrationParser().parse_file(file_path)
