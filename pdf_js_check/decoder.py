"""Narrow boundary around pypdf.

The scanner, repairer and classifier never touch ``PdfReader`` directly; they
go through :class:`PdfDecoder` and :class:`DecodedDocument`, which expose the
cross-reference table, per-object decoding and object-stream data.
"""

from __future__ import annotations

import io
import logging
import re
from typing import Any

from pypdf import PdfReader
from pypdf.errors import PyPdfError
from pypdf.generic import IndirectObject, StreamObject

from .errors import ParseError
from .types import XrefEntry

logger = logging.getLogger(__name__)

_OBJ_HEADER_RE = re.compile(rb"\s*(\d+)\s+(\d+)\s+obj\b")


class DecodedDocument:
    def __init__(self, reader: PdfReader, data: bytes) -> None:
        self.reader = reader
        self.data = data
        self._stream_cache: dict[int, bytes] = {}

    def xref_entries(self) -> list[XrefEntry]:
        entries: dict[int, XrefEntry] = {}
        for generation, table in self.reader.xref.items():
            for idnum, offset in table.items():
                entries[int(idnum)] = XrefEntry(
                    object_id=int(idnum),
                    byte_offset=int(offset),
                    in_use=True,
                    generation=int(generation),
                )
        for idnum, location in self.reader.xref_objStm.items():
            if int(idnum) in entries:
                continue
            entries[int(idnum)] = XrefEntry(
                object_id=int(idnum),
                byte_offset=0,
                in_use=True,
                generation=0,
                stream_id=int(location[0]),
            )
        for generation, table in self.reader.xref_free_entry.items():
            for idnum, is_free in table.items():
                if not is_free or int(idnum) in entries:
                    continue
                entries[int(idnum)] = XrefEntry(
                    object_id=int(idnum),
                    byte_offset=0,
                    in_use=False,
                    generation=int(generation),
                )
        return [entries[key] for key in sorted(entries)]

    def is_aligned(self) -> bool:
        """Whether every in-use offset points at its ``<id> <gen> obj`` marker."""
        for entry in self.xref_entries():
            if not entry.in_use or entry.compressed or entry.byte_offset <= 0:
                continue
            match = _OBJ_HEADER_RE.match(self.data, entry.byte_offset)
            if match is None:
                return False
            if int(match.group(1)) != entry.object_id or int(match.group(2)) != entry.generation:
                return False
        return True

    def get_indirect_object(self, entry: XrefEntry) -> Any:
        ref = IndirectObject(entry.object_id, entry.generation, self.reader)
        return self.reader.get_object(ref)

    def object_stream_data(self, stream_id: int) -> bytes:
        if stream_id in self._stream_cache:
            return self._stream_cache[stream_id]
        data = b""
        try:
            stream = self.reader.get_object(IndirectObject(stream_id, 0, self.reader))
            if isinstance(stream, StreamObject):
                data = stream.get_data()
        except Exception as exc:
            logger.warning(
                "Unable to decompress object stream",
                extra={"context": {"stream_id": stream_id, "error": str(exc)}},
            )
        self._stream_cache[stream_id] = data
        return data


class PdfDecoder:
    def __init__(self, strict: bool = True) -> None:
        self.strict = strict

    def open(self, data: bytes) -> DecodedDocument:
        try:
            reader = PdfReader(io.BytesIO(data), strict=self.strict)
        except PyPdfError as exc:
            raise ParseError(f"pypdf could not read document structure: {exc}") from exc
        except Exception as exc:
            raise ParseError(f"unexpected decoder failure: {exc}") from exc
        return DecodedDocument(reader, data)
