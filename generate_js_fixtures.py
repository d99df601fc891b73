#!/usr/bin/env python3
"""
Generate sample PDFs for exercising pdf-js-check.

Usage:
  python3 generate_js_fixtures.py [output_dir]

Dependencies:
  pip install reportlab pikepdf
"""

from __future__ import annotations

import re
import sys
import tempfile
from pathlib import Path

import pikepdf
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas


def create_clean_pdf(path: Path) -> None:
    c = canvas.Canvas(str(path), pagesize=letter)
    w, h = letter
    c.setFont("Helvetica", 11)
    c.drawString(72, h - 72, "Plain text page with no actions or annotations.")
    c.showPage()
    c.save()


def create_link_pdf(path: Path, uri: str) -> None:
    c = canvas.Canvas(str(path), pagesize=letter)
    w, h = letter
    c.setFont("Helvetica", 11)
    c.drawString(72, h - 72, "Click the link below.")
    c.linkURL(uri, (72, h - 104, 360, h - 88), relative=0)
    c.showPage()
    c.save()


def add_openaction_javascript(pdf: pikepdf.Pdf) -> None:
    action = pikepdf.Dictionary(
        {
            "/S": pikepdf.Name("/JavaScript"),
            "/JS": pikepdf.String("app.alert('OpenAction JavaScript test');"),
        }
    )
    pdf.Root["/OpenAction"] = action


def add_page_open_javascript(pdf: pikepdf.Pdf, page_obj: pikepdf.Object) -> None:
    action = pdf.make_indirect(
        pikepdf.Dictionary(
            {
                "/S": pikepdf.Name("/JavaScript"),
                "/JS": pikepdf.String("app.alert('Page open JavaScript test');"),
            }
        )
    )
    page_obj["/AA"] = pikepdf.Dictionary({"/O": action})


def create_openaction_pdf(path: Path) -> None:
    with tempfile.TemporaryDirectory() as td:
        base = Path(td) / "base.pdf"
        create_clean_pdf(base)
        with pikepdf.open(str(base)) as pdf:
            add_openaction_javascript(pdf)
            pdf.save(str(path))


def create_page_action_pdf(path: Path) -> None:
    with tempfile.TemporaryDirectory() as td:
        base = Path(td) / "base.pdf"
        create_clean_pdf(base)
        with pikepdf.open(str(base)) as pdf:
            add_page_open_javascript(pdf, pdf.pages[0].obj)
            pdf.save(str(path))


def break_structure(data: bytes) -> bytes:
    """Drop the xref section and the final ``endobj``, as truncated samples do."""
    xref_positions = [m.start() for m in re.finditer(rb"(?<![A-Za-z])xref", data)]
    body = data[: xref_positions[-1]] if xref_positions else data
    last_endobj = body.rfind(b"endobj")
    if last_endobj >= 0:
        body = body[:last_endobj]
    return body


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    out_dir = Path(args[0]) if args else Path("fixtures")
    out_dir.mkdir(parents=True, exist_ok=True)

    create_clean_pdf(out_dir / "clean.pdf")
    create_link_pdf(out_dir / "javascript-uri.pdf", "javascript:app.alert(1)")
    create_openaction_pdf(out_dir / "openaction.pdf")
    create_page_action_pdf(out_dir / "page-open-action.pdf")
    broken = break_structure((out_dir / "openaction.pdf").read_bytes())
    (out_dir / "openaction-broken.pdf").write_bytes(broken)

    for p in sorted(out_dir.glob("*.pdf")):
        print(f"Generated: {p.resolve()}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
