from __future__ import annotations

import pytest

from pdf_js_check.classifier import JsIndicatorClassifier
from pdf_js_check.decoder import DecodedDocument
from pdf_js_check.errors import EmptyInputError, MissingHeaderError, ParseError
from pdf_js_check.raw_scanner import (
    RawObjectScanner,
    might_contain_javascript,
    raw_object_span,
)

from conftest import clean_objects


def test_prefilter_markers_are_case_sensitive():
    assert might_contain_javascript(b"<< /S /JavaScript /JS (x) >>")
    assert might_contain_javascript(b"(window.location)")
    assert not might_contain_javascript(b"<< /s /javascript >>")
    assert not might_contain_javascript(b"")


def test_raw_object_span():
    data = b"1 0 obj\n<< >>\nendobj\n2 0 obj\n<< >>\n"
    assert raw_object_span(data, 0) == (0, data.index(b"endobj") + 6)
    assert raw_object_span(data, data.index(b"2 0 obj")) is None


def test_empty_and_headerless_input():
    scanner = RawObjectScanner()
    with pytest.raises(EmptyInputError):
        scanner.scan(b"")
    with pytest.raises(MissingHeaderError):
        scanner.scan(b"1 0 obj\n<< /JS (x) >>\nendobj\n")


def test_unreadable_structure_raises_parse_error(broken_js_pdf_bytes):
    with pytest.raises(ParseError):
        RawObjectScanner().scan(broken_js_pdf_bytes)


def test_prefilter_skips_objects_without_markers(clean_pdf_bytes, openaction_pdf_bytes):
    scanner = RawObjectScanner()
    assert list(scanner.scan(clean_pdf_bytes)) == []

    document = scanner.open_document(openaction_pdf_bytes)
    candidates = list(scanner.iter_candidates(document))
    assert [c.object_id for c in candidates] == ["1", "2", "3", "4"]
    assert [c.passed_prefilter for c in candidates] == [True, False, False, False]
    assert candidates[0].raw_span[0] == openaction_pdf_bytes.index(b"1 0 obj")


def test_junk_before_header_is_trimmed(openaction_pdf_bytes):
    classifier = JsIndicatorClassifier()
    data = b"GARBAGE PREFIX\n" + openaction_pdf_bytes
    assert RawObjectScanner().has_matching_object(data, classifier.contains_javascript)


def test_iteration_stops_at_first_match(pdf_builder):
    objects = clean_objects()
    objects[5] = "<< /S /JavaScript /JS (first()) >>"
    objects[6] = "<< /S /JavaScript /JS (second()) >>"
    data = pdf_builder(objects)

    seen: list[object] = []

    def predicate(obj: object) -> bool:
        seen.append(obj)
        return True

    assert RawObjectScanner().has_matching_object(data, predicate)
    assert len(seen) == 1


def test_decode_failure_does_not_stop_scan(pdf_builder, monkeypatch):
    objects = clean_objects()
    objects[5] = "<< /S /JavaScript /JS (first()) >>"
    objects[6] = "<< /S /JavaScript /JS (second()) >>"
    data = pdf_builder(objects)

    original = DecodedDocument.get_indirect_object

    def flaky(self, entry):
        if entry.object_id == 5:
            raise ValueError("corrupt object")
        return original(self, entry)

    monkeypatch.setattr(DecodedDocument, "get_indirect_object", flaky)
    decoded = [c.decode() for c in RawObjectScanner().scan(data)]
    assert decoded[0] is None
    assert decoded[1]["/JS"] == "second()"
    assert RawObjectScanner().has_matching_object(data, JsIndicatorClassifier().contains_javascript)


def test_crlf_converted_file_is_rescanned_with_lf(openaction_pdf_bytes):
    converted = openaction_pdf_bytes.replace(b"\n", b"\r\n")
    scanner = RawObjectScanner()
    document = scanner.open_document(converted)
    assert b"\r\n" not in document.data
    assert scanner.has_matching_object(converted, JsIndicatorClassifier().contains_javascript)


def test_custom_markers(pdf_builder):
    objects = clean_objects()
    objects[5] = "<< /Type /Annot /Subtype /Widget /Note (launch) >>"
    data = pdf_builder(objects)
    assert list(RawObjectScanner().scan(data)) == []
    scanner = RawObjectScanner(markers=(b"launch",))
    assert [c.object_id for c in scanner.scan(data)] == ["5"]


def test_openaction_document_matches(openaction_pdf_bytes, pdf_builder):
    classifier = JsIndicatorClassifier()
    assert RawObjectScanner().has_matching_object(openaction_pdf_bytes, classifier.contains_javascript)
    clean = pdf_builder(clean_objects())
    assert not RawObjectScanner().has_matching_object(clean, classifier.contains_javascript)
