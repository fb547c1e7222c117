"""Test Source Extractor

Locating and parsing the designer XML segment inside source files.
"""

from pathlib import Path
import codecs
import sys

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from odxanalyzer.errors import FormatError, OrchestrationIOError
from odxanalyzer.static_analysis import SourceExtractor

from odx_samples import FILE_PREFIX, FILE_SUFFIX, odx_document, odx_xml


class TestExtractXml:
    """Cutting the XML document out of raw file text"""

    def test_segment_runs_from_declaration_to_sentinel(self):
        """Prefix before the declaration and code after the sentinel are dropped"""
        raw = odx_document()
        fragment = SourceExtractor().extract_xml(raw, "a.odx")

        assert fragment.startswith("<?xml")
        assert "#endif" not in fragment
        assert "module Test.Orchestrations" not in fragment
        assert fragment.rstrip().endswith("</om:MetaModel>")

    def test_missing_declaration(self):
        raw = "#if __DESIGNER_DATA\n<om:MetaModel/>\n#endif\n"
        with pytest.raises(FormatError) as exc_info:
            SourceExtractor().extract_xml(raw, "a.odx")
        assert "Missing XML declaration" in str(exc_info.value)
        assert exc_info.value.source == "a.odx"

    def test_missing_sentinel_fails_before_xml_parsing(self):
        """A truncated file is rejected even when its XML is malformed"""
        raw = FILE_PREFIX + "<?xml version='1.0'?><om:MetaModel <<< not xml"
        extractor = SourceExtractor()
        calls = []
        extractor.parse_xml = lambda fragment, source="": calls.append(fragment)

        with pytest.raises(FormatError) as exc_info:
            extractor.load_text(raw, "broken.odx")

        assert "#endif" in str(exc_info.value)
        assert calls == []

    def test_sentinel_before_declaration_is_ignored(self):
        """Only a sentinel after the declaration terminates the segment"""
        raw = "#endif\n" + odx_document()
        fragment = SourceExtractor().extract_xml(raw)
        assert fragment.startswith("<?xml")
        assert "</om:MetaModel>" in fragment


class TestParseXml:
    """Well-formedness checks"""

    def test_parses_document(self):
        root = SourceExtractor().load_text(odx_document())
        assert root.tag.endswith("MetaModel")

    def test_malformed_xml_reports_position(self):
        raw = FILE_PREFIX + "<?xml version=\"1.0\"?>\n<om:MetaModel xmlns:om='urn:x'>\n<unclosed>\n</om:MetaModel>" + FILE_SUFFIX
        with pytest.raises(FormatError) as exc_info:
            SourceExtractor().load_text(raw, "bad.odx")

        error = exc_info.value
        assert error.line is not None
        assert error.column is not None
        assert "bad.odx" in str(error)


class TestReadFile:
    """File access and encodings"""

    def test_missing_file(self, tmp_path):
        with pytest.raises(OrchestrationIOError):
            SourceExtractor().load(tmp_path / "nope.odx")

    def test_utf8_with_bom(self, tmp_path):
        path = tmp_path / "bom.odx"
        path.write_bytes(codecs.BOM_UTF8 + odx_document().encode("utf-8"))
        root = SourceExtractor().load(path)
        assert root.tag.endswith("MetaModel")

    def test_utf16_file(self, tmp_path):
        """Designer tools commonly save as UTF-16 with a declaration naming utf-16"""
        text = FILE_PREFIX + odx_xml().replace('encoding="utf-8"', 'encoding="utf-16"') + FILE_SUFFIX
        path = tmp_path / "wide.odx"
        path.write_bytes(text.encode("utf-16"))

        root = SourceExtractor().load(path)
        assert root.tag.endswith("MetaModel")
