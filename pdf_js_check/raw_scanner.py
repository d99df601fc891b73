from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from typing import Any

from .decoder import DecodedDocument, PdfDecoder
from .errors import EmptyInputError, MissingHeaderError, ParseError
from .types import CandidateObject, XrefEntry

logger = logging.getLogger(__name__)

PDF_HEADER = b"%PDF-"

DEFAULT_PREFILTER_MARKERS: tuple[bytes, ...] = (
    b"/JS",
    b"/JavaScript",
    b"/OpenAction",
    b"/AA",
    b"/Action",
    b"javascript:",
    b"alert",
    b"window",
)


def might_contain_javascript(content: bytes, markers: Iterable[bytes] = DEFAULT_PREFILTER_MARKERS) -> bool:
    if not content:
        return False
    return any(marker in content for marker in markers)


def raw_object_span(data: bytes, offset: int) -> tuple[int, int] | None:
    """Span from ``offset`` through the next literal ``endobj``, or None."""
    end = data.find(b"endobj", offset)
    if end < 0:
        return None
    return offset, end + len(b"endobj")


class RawObjectScanner:
    def __init__(
        self,
        decoder: PdfDecoder | None = None,
        markers: Iterable[bytes] = DEFAULT_PREFILTER_MARKERS,
        scan_object_streams: bool = True,
    ) -> None:
        self.decoder = decoder or PdfDecoder()
        self.markers = tuple(markers)
        self.scan_object_streams = scan_object_streams

    def open_document(self, data: bytes) -> DecodedDocument:
        if not data:
            raise EmptyInputError("Empty PDF data given.")
        trim = data.find(PDF_HEADER)
        if trim < 0:
            raise MissingHeaderError("Invalid PDF data: missing `%PDF-` header.")
        pdf_data = data[trim:] if trim > 0 else data

        # Offsets written for LF line endings in a file later converted to
        # CRLF either break the xref reader or point past the object markers.
        # Normalising once is enough; a second failure is final.
        has_crlf = b"\r\n" in pdf_data
        document: DecodedDocument | None = None
        try:
            document = self.decoder.open(pdf_data)
        except ParseError as exc:
            if not has_crlf:
                raise
            first_error = exc
        else:
            if document.is_aligned() or not has_crlf:
                return document

        logger.debug("Xref offsets do not match, retrying with LF line endings")
        try:
            return self.decoder.open(pdf_data.replace(b"\r\n", b"\n"))
        except ParseError as exc:
            logger.debug("LF retry failed", extra={"context": {"error": str(exc)}})
            if document is None:
                raise first_error
            return document

    def iter_candidates(self, document: DecodedDocument) -> Iterator[CandidateObject]:
        for entry in document.xref_entries():
            if not entry.in_use:
                continue
            if entry.compressed:
                if not self.scan_object_streams:
                    continue
                content = document.object_stream_data(entry.stream_id)
                span = None
            else:
                if entry.byte_offset <= 0:
                    continue
                span = raw_object_span(document.data, entry.byte_offset)
                content = document.data[span[0] : span[1]] if span else b""

            yield CandidateObject(
                object_id=str(entry.object_id),
                generation=entry.generation,
                raw_span=span,
                passed_prefilter=might_contain_javascript(content, self.markers),
                _decoder=_deferred_decode(document, entry),
            )

    def scan(self, data: bytes) -> Iterator[CandidateObject]:
        # Structure is read eagerly so header/xref failures raise here,
        # while object decoding stays deferred.
        document = self.open_document(data)
        return (c for c in self.iter_candidates(document) if c.passed_prefilter)

    def has_matching_object(self, data: bytes, predicate: Callable[[Any], bool]) -> bool:
        for candidate in self.scan(data):
            obj = candidate.decode()
            if obj is None:
                continue
            if predicate(obj):
                logger.debug(
                    "Matching object found",
                    extra={"context": {"object_id": candidate.object_id}},
                )
                return True
        return False


def _deferred_decode(document: DecodedDocument, entry: XrefEntry) -> Callable[[], Any]:
    def decode() -> Any:
        try:
            return document.get_indirect_object(entry)
        except Exception as exc:
            logger.warning(
                "Failed to decode object, skipping",
                extra={"context": {"object_id": entry.object_id, "error": str(exc)}},
            )
            return None

    return decode
