"""Generic Element Reader

Thin XPath accessor over the designer schema, where every construct is an
`Element` carrying a `Type` attribute, an optional `OID` attribute and
`Property` children with `Name`/`Value` pairs.
"""

from typing import Dict, List, Optional

from lxml import etree

from odxanalyzer.config import DESIGNER_NAMESPACE, NAMESPACE_PREFIX


class ElementReader:
    """Two primitives (select, evaluate) plus attribute and property shortcuts"""

    def __init__(self, namespace: str = DESIGNER_NAMESPACE, prefix: str = NAMESPACE_PREFIX):
        self.namespaces = {prefix: namespace}
        self.prefix = prefix
        self._compiled: Dict[str, etree.XPath] = {}

    def _xpath(self, path: str) -> etree.XPath:
        compiled = self._compiled.get(path)
        if compiled is None:
            compiled = etree.XPath(path, namespaces=self.namespaces)
            self._compiled[path] = compiled
        return compiled

    def select(self, element, path: str) -> List:
        """All matches of a path relative to element (or absolute)"""
        result = self._xpath(path)(element)
        return result if isinstance(result, list) else [result]

    def eval(self, element, path: str) -> str:
        """String value of the first match, or empty string"""
        result = self._xpath(path)(element)
        if isinstance(result, list):
            if not result:
                return ""
            result = result[0]
        if isinstance(result, etree._Element):
            return "".join(result.itertext())
        if isinstance(result, bool):
            return "true" if result else "false"
        return str(result)

    # Shortcuts built from the primitives

    def prop(self, element, name: str) -> str:
        return self.eval(element, f"{self.prefix}:Property[@Name='{name}']/@Value")

    def first_prop(self, element, *names: str) -> str:
        """First non-empty property among names"""
        for name in names:
            value = self.prop(element, name)
            if value:
                return value
        return ""

    def children(self, element, *types: str) -> List:
        """Child Elements, optionally restricted to the given Type values"""
        if not types:
            return self.select(element, f"{self.prefix}:Element")
        condition = " or ".join(f"@Type='{t}'" for t in types)
        return self.select(element, f"{self.prefix}:Element[{condition}]")

    def first_child(self, element, element_type: str) -> Optional[etree._Element]:
        matches = self.children(element, element_type)
        return matches[0] if matches else None

    @staticmethod
    def element_type(element) -> str:
        return element.get("Type", "")

    @staticmethod
    def oid(element) -> str:
        return element.get("OID", "")
