from __future__ import annotations

import pytest

from pdf_js_check.cli import main
from pdf_js_check.detector import DetectorConfig, PdfJavaScriptDetector
from pdf_js_check.raw_scanner import RawObjectScanner
from pdf_js_check.repairer import StructuralRepairer

from conftest import strip_eof


def test_reportlab_text_pdf_is_clean(generated_dir):
    result = PdfJavaScriptDetector().detect(generated_dir / "clean.pdf")
    assert result.detected is False
    assert result.used_repair is False


@pytest.mark.parametrize("name", ["javascript-uri.pdf", "openaction.pdf", "page-open-action.pdf"])
def test_generated_payloads_detected(generated_dir, name):
    result = PdfJavaScriptDetector().detect(generated_dir / name)
    assert result.detected is True
    assert result.used_repair is False


def test_truncated_payload_detected_after_repair(generated_dir):
    result = PdfJavaScriptDetector().detect(generated_dir / "openaction-broken.pdf")
    assert result.detected is True
    assert result.used_repair is True


def test_missing_eof_marker_detected_after_repair(generated_dir, write_pdf):
    path = write_pdf(strip_eof((generated_dir / "openaction.pdf").read_bytes()), "no-eof.pdf")
    result = PdfJavaScriptDetector().detect(path)
    assert result.detected is True
    assert result.used_repair is True


def test_object_stream_members_are_scanned(object_stream_pdf):
    scanner = RawObjectScanner()
    document = scanner.open_document(object_stream_pdf.read_bytes())
    assert any(c.raw_span is None for c in scanner.iter_candidates(document))
    assert PdfJavaScriptDetector(DetectorConfig()).detect_javascript(object_stream_pdf) is True


def test_xref_stream_file_is_left_alone_by_repair(object_stream_pdf):
    data = object_stream_pdf.read_bytes()
    repaired, applied = StructuralRepairer().repair_with_record(data)
    assert repaired == data
    assert applied == []


def test_xref_stream_file_without_eof_detected_after_repair(object_stream_pdf, write_pdf):
    data = strip_eof(object_stream_pdf.read_bytes())
    assert StructuralRepairer().repair_with_record(data)[1] == ["eof"]

    result = PdfJavaScriptDetector().detect(write_pdf(data, "objstm-no-eof.pdf"))
    assert result.detected is True
    assert result.used_repair is True


def test_cli_can_skip_object_streams(object_stream_pdf):
    assert main([str(object_stream_pdf)]) == 1
    assert main([str(object_stream_pdf), "--no-object-streams"]) == 0
