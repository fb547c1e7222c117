"""Error types raised while loading and building orchestration models"""

from typing import Optional


class OdxError(Exception):
    """Base class for every failure tied to a single orchestration file"""

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source


class OrchestrationIOError(OdxError):
    """File is missing or could not be read"""


class FormatError(OdxError):
    """Embedded XML segment is missing, truncated or not well-formed"""

    def __init__(self, message: str, source: Optional[str] = None,
                 line: Optional[int] = None, column: Optional[int] = None):
        super().__init__(message, source)
        self.line = line
        self.column = column


class SemanticError(OdxError):
    """Document parsed but a required field (e.g. orchestration name) is absent"""


class SectionError(OdxError):
    """A named sub-section failed while the model was being built"""

    def __init__(self, orchestration: str, section: str, cause: Exception,
                 source: Optional[str] = None):
        super().__init__(
            f"Failed to parse {section} in orchestration '{orchestration}': {cause}",
            source,
        )
        self.orchestration = orchestration
        self.section = section


class ConfigError(OdxError):
    """Override file could not be loaded or contains unknown keys"""
