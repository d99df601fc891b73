from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

CATALOG = "<< /Type /Catalog /Pages 2 0 R >>"
PAGES = "<< /Type /Pages /Kids [3 0 R] /Count 1 >>"
PAGE = "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R >>"


def stream(data: str) -> str:
    return f"<< /Length {len(data)} >>\nstream\n{data}\nendstream"


def build_pdf(objects: dict[int, str]) -> bytes:
    """Assemble a well-formed PDF with an exact cross-reference table."""
    out = bytearray(b"%PDF-1.4\n")
    offsets: dict[int, int] = {}
    for object_id in sorted(objects):
        offsets[object_id] = len(out)
        out += f"{object_id} 0 obj\n{objects[object_id]}\nendobj\n".encode("latin-1")

    size = max(objects) + 1
    xref_pos = len(out)
    out += f"xref\n0 {size}\n".encode("ascii")
    out += b"0000000000 65535 f \n"
    for object_id in range(1, size):
        if object_id in offsets:
            out += f"{offsets[object_id]:010d} 00000 n \n".encode("ascii")
        else:
            out += b"0000000000 00000 f \n"
    out += f"trailer\n<< /Size {size} /Root 1 0 R >>\nstartxref\n{xref_pos}\n%%EOF\n".encode("ascii")
    return bytes(out)


def clean_objects() -> dict[int, str]:
    return {
        1: CATALOG,
        2: PAGES,
        3: PAGE,
        4: stream("BT /F1 12 Tf 72 712 Td (Hello world) Tj ET"),
    }


def openaction_objects() -> dict[int, str]:
    objects = clean_objects()
    objects[1] = "<< /Type /Catalog /Pages 2 0 R /OpenAction << /S /JavaScript /JS (app.alert(1)) >> >>"
    return objects


@pytest.fixture
def pdf_builder() -> Callable[[dict[int, str]], bytes]:
    return build_pdf


@pytest.fixture
def clean_pdf_bytes() -> bytes:
    return build_pdf(clean_objects())


@pytest.fixture
def openaction_pdf_bytes() -> bytes:
    return build_pdf(openaction_objects())


@pytest.fixture
def broken_js_pdf_bytes() -> bytes:
    # Last object lacks its endobj and there is no xref/trailer/startxref at all.
    return (
        b"%PDF-1.4\n"
        b"1 0 obj\n<< /Type /Catalog /Pages 2 0 R /OpenAction 3 0 R >>\nendobj\n"
        b"2 0 obj\n<< /Type /Pages /Kids [] /Count 0 >>\nendobj\n"
        b"3 0 obj\n<< /S /JavaScript /JS (app.alert(1)) >>\n"
    )


@pytest.fixture
def write_pdf(tmp_path: Path) -> Callable[[bytes, str], Path]:
    def _write(data: bytes, name: str = "sample.pdf") -> Path:
        path = tmp_path / name
        path.write_bytes(data)
        return path

    return _write


@pytest.fixture
def generated_dir(tmp_path: Path) -> Path:
    pytest.importorskip("reportlab")
    pytest.importorskip("pikepdf")
    import generate_js_fixtures

    out_dir = tmp_path / "fixtures"
    generate_js_fixtures.main([str(out_dir)])
    return out_dir


@pytest.fixture
def object_stream_pdf(generated_dir: Path) -> Path:
    """The OpenAction sample re-saved with compressed object streams and an xref stream."""
    import pikepdf

    path = generated_dir / "openaction-objstm.pdf"
    with pikepdf.open(str(generated_dir / "openaction.pdf")) as pdf:
        pdf.save(str(path), object_stream_mode=pikepdf.ObjectStreamMode.generate)
    return path


def strip_eof(data: bytes) -> bytes:
    return data[: data.rindex(b"%%EOF")]
