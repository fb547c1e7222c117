"""Source Extractor

Locates the designer XML segment embedded in an orchestration source file.
The file stores an XML document followed by generated host-language code;
the two parts are separated by a fixed sentinel token.
"""

import codecs
from pathlib import Path
from typing import Union
import logging

from lxml import etree

from odxanalyzer.config import DESIGNER_DATA_SENTINEL, XML_DECLARATION_MARKER
from odxanalyzer.errors import FormatError, OrchestrationIOError

logger = logging.getLogger(__name__)


class SourceExtractor:
    """Read a source file and isolate its XML document"""

    def __init__(self, declaration_marker: str = XML_DECLARATION_MARKER,
                 sentinel: str = DESIGNER_DATA_SENTINEL):
        self.declaration_marker = declaration_marker
        self.sentinel = sentinel
        # The declaration may name an encoding that no longer matches the decoded
        # text, so the parser is always told the bytes are UTF-8.
        self.parser = etree.XMLParser(
            encoding="utf-8",
            resolve_entities=False,
            no_network=True,
            huge_tree=True,
        )

    def read(self, file_path: Union[str, Path]) -> str:
        """Read raw file text, honouring a UTF-16 or UTF-8 byte order mark"""
        file_path = Path(file_path)
        if not file_path.is_file():
            raise OrchestrationIOError(f"Orchestration file not found: {file_path}", file_path.name)

        try:
            data = file_path.read_bytes()
        except OSError as e:
            raise OrchestrationIOError(
                f"Failed to read orchestration file '{file_path}': {e}", file_path.name
            ) from e

        if data.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
            return data.decode("utf-16")
        return data.decode("utf-8-sig", errors="replace")

    def extract_xml(self, raw: str, source: str = "") -> str:
        """
        Cut the XML document out of the raw file text.

        The document runs from the first XML declaration up to (not including)
        the first sentinel that follows it.
        """
        start = raw.find(self.declaration_marker)
        if start < 0:
            raise FormatError(
                f"Invalid orchestration file '{source}': Missing XML declaration.", source
            )

        end = raw.find(self.sentinel, start)
        if end < 0:
            raise FormatError(
                f"Invalid orchestration file '{source}': Missing '{self.sentinel}' sentinel. "
                "The file may be corrupted or incomplete.",
                source,
            )

        return raw[start:end]

    def parse_xml(self, fragment: str, source: str = "") -> etree._Element:
        """Parse the isolated XML, reporting the position of any syntax error"""
        try:
            return etree.fromstring(fragment.encode("utf-8"), self.parser)
        except etree.XMLSyntaxError as e:
            line, column = e.position if e.position else (None, None)
            raise FormatError(
                f"Failed to parse XML in orchestration file '{source}' "
                f"at line {line}, position {column}: {e.msg}",
                source,
                line=line,
                column=column,
            ) from e

    def load_text(self, raw: str, source: str = "") -> etree._Element:
        return self.parse_xml(self.extract_xml(raw, source), source)

    def load(self, file_path: Union[str, Path]) -> etree._Element:
        """Read, extract and parse in one step"""
        file_path = Path(file_path)
        logger.debug(f"Extracting designer XML from {file_path}")
        return self.load_text(self.read(file_path), file_path.name)
