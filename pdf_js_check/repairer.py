"""Targeted structural repair for malformed PDFs.

Only enough structure is rebuilt for the decoder to read the object graph
again: object boundaries, the header, the cross-reference table with its
trailer, the ``startxref`` pointer and the closing ``%%EOF``. Each pass leaves
well-formed input untouched, so :meth:`StructuralRepairer.repair` is idempotent.

A file whose ``startxref`` points at a cross-reference stream already has a
table. When a table must be rebuilt and an older xref stream survives in the
body, the new trailer chains to it with ``/Prev`` and only lists the objects
it found, so members of compressed object streams stay reachable.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from .errors import RepairError
from .types import RepairInsertion

logger = logging.getLogger(__name__)

DEFAULT_HEADER = b"%PDF-1.4\n"
ENDOBJ_INSERT = b"\nendobj\n"

OBJECT_MARKER_RE = re.compile(rb"\d+ \d+ obj\b")
OBJECT_LINE_RE = re.compile(rb"(\d+) (\d+) obj")
STRUCTURE_KEYWORD_RE = re.compile(rb"\b(?:trailer|startxref|xref)\b|%%EOF")
# A standalone xref keyword; the tail of ``startxref`` is not a table.
XREF_KEYWORD_RE = re.compile(rb"(?<![A-Za-z])xref")
STARTXREF_RE = re.compile(rb"startxref\s+(\d+)")
OBJECT_HEADER_AT_RE = re.compile(rb"\s*\d+\s+\d+\s+obj\b")
XREF_STREAM_TYPE_RE = re.compile(rb"/Type\s*/XRef\b")


@dataclass(frozen=True)
class ObjectLocation:
    object_id: int
    generation: int
    offset: int


class StructuralRepairer:
    def repair(self, data: bytes) -> bytes:
        repaired, _ = self.repair_with_record(data)
        return repaired

    def repair_with_record(self, data: bytes) -> tuple[bytes, list[str]]:
        """Run every pass in order; also return the names of passes that changed the buffer."""
        if not data:
            raise RepairError("Empty PDF data, nothing to repair.")

        passes = [
            ("endobj", self.repair_missing_endobj),
            ("header", self.repair_header),
            ("xref", self.repair_xref_table),
            ("startxref", self.repair_startxref),
            ("eof", self.repair_eof_marker),
        ]
        applied: list[str] = []
        content = data
        try:
            for name, repair_pass in passes:
                updated = repair_pass(content)
                if updated != content:
                    applied.append(name)
                content = updated
        except Exception as exc:
            logger.error("PDF repair failed", extra={"context": {"error": str(exc)}})
            raise RepairError(f"PDF repair failed: {exc}") from exc

        logger.debug("PDF repair finished", extra={"context": {"passes": applied}})
        return content, applied

    def repair_missing_endobj(self, content: bytes) -> bytes:
        return apply_insertions(content, plan_endobj_insertions(content))

    def repair_header(self, content: bytes) -> bytes:
        if not content.startswith(b"%PDF-"):
            return DEFAULT_HEADER + content
        return content

    def repair_xref_table(self, content: bytes) -> bytes:
        xref_pos = find_last_xref(content)
        if xref_pos is not None and is_valid_xref_section(content[xref_pos:]):
            return content
        if points_at_xref_stream(content):
            return content

        body = content[:xref_pos] if xref_pos is not None else content
        objects = find_all_objects(body)
        if not objects:
            return content

        prev = find_xref_stream_offset(body, objects)
        if not body.endswith((b"\n", b"\r")):
            body += b"\n"
        if prev is not None:
            table = build_sparse_xref_table(objects)
        else:
            table = build_xref_table(objects)
        return body + table + build_trailer(objects, prev=prev, body=body) + build_startxref(len(body))

    def repair_startxref(self, content: bytes) -> bytes:
        if b"startxref" in content:
            return content
        xref_pos = find_last_xref(content)
        if xref_pos is None:
            return content
        if not content.endswith((b"\n", b"\r")):
            content += b"\n"
        return content + build_startxref(xref_pos)

    def repair_eof_marker(self, content: bytes) -> bytes:
        start = content.rfind(b"startxref")
        if start < 0 or b"%%EOF" in content[start:]:
            return content
        if not content.endswith((b"\n", b"\r")):
            content += b"\n"
        return content + b"%%EOF\n"


def plan_endobj_insertions(content: bytes) -> list[RepairInsertion]:
    starts = [m.start() for m in OBJECT_MARKER_RE.finditer(content)]
    insertions: list[RepairInsertion] = []
    for idx, start in enumerate(starts):
        if idx + 1 < len(starts):
            end = starts[idx + 1]
        else:
            keyword = STRUCTURE_KEYWORD_RE.search(content, start)
            end = keyword.start() if keyword else len(content)
        if b"endobj" not in content[start:end]:
            insertions.append(RepairInsertion(position=end, inserted_text=ENDOBJ_INSERT))
    return insertions


def apply_insertions(content: bytes, insertions: list[RepairInsertion]) -> bytes:
    # Highest position first so earlier offsets stay valid.
    for ins in sorted(insertions, key=lambda i: i.position, reverse=True):
        content = content[: ins.position] + ins.inserted_text + content[ins.position :]
    return content


def find_last_xref(content: bytes) -> int | None:
    last = None
    for match in XREF_KEYWORD_RE.finditer(content):
        last = match.start()
    return last


def is_valid_xref_section(tail: bytes) -> bool:
    return b"xref" in tail and b"trailer" in tail and b"startxref" in tail


def find_all_objects(body: bytes) -> dict[int, ObjectLocation]:
    """Map object id to its marker offset for every ``N G obj`` ... ``endobj`` pair.

    Offsets are line-granular: the cumulative length of the preceding lines
    plus their newlines, plus any indentation before the marker.
    """
    objects: dict[int, ObjectLocation] = {}
    current: ObjectLocation | None = None
    pos = 0
    for line in body.split(b"\n"):
        stripped = line.strip()
        match = OBJECT_LINE_RE.fullmatch(stripped)
        if match:
            current = ObjectLocation(
                object_id=int(match.group(1)),
                generation=int(match.group(2)),
                offset=pos + len(line) - len(line.lstrip()),
            )
        elif current is not None and stripped.endswith(b"endobj"):
            objects[current.object_id] = current
            current = None
        pos += len(line) + 1
    return objects


def build_xref_table(objects: dict[int, ObjectLocation]) -> bytes:
    max_id = max(objects)
    rows = [b"xref\n", f"0 {max_id + 1}\n".encode("ascii")]
    for object_id in range(max_id + 1):
        location = objects.get(object_id)
        if object_id == 0:
            rows.append(b"0000000000 65535 f \n")
        elif location is None:
            rows.append(b"0000000000 00000 f \n")
        else:
            rows.append(f"{location.offset:010d} {location.generation:05d} n \n".encode("ascii"))
    return b"".join(rows)


def build_sparse_xref_table(objects: dict[int, ObjectLocation]) -> bytes:
    """Like :func:`build_xref_table`, but ids that were not found get no row at all."""
    rows = [b"xref\n", b"0 1\n", b"0000000000 65535 f \n"]
    run: list[int] = []
    for object_id in sorted(i for i in objects if i > 0):
        if run and object_id != run[-1] + 1:
            rows.extend(_xref_subsection(run, objects))
            run = []
        run.append(object_id)
    if run:
        rows.extend(_xref_subsection(run, objects))
    return b"".join(rows)


def _xref_subsection(ids: list[int], objects: dict[int, ObjectLocation]) -> list[bytes]:
    rows = [f"{ids[0]} {len(ids)}\n".encode("ascii")]
    for object_id in ids:
        location = objects[object_id]
        rows.append(f"{location.offset:010d} {location.generation:05d} n \n".encode("ascii"))
    return rows


def build_trailer(objects: dict[int, ObjectLocation], prev: int | None = None, body: bytes = b"") -> bytes:
    size = max(objects) + 1 if objects else 1
    root = "1 0 R"
    lines = ["trailer", "<<"]
    if prev is not None:
        head = xref_stream_dictionary(body, prev)
        size_match = re.search(rb"/Size\s+(\d+)", head)
        if size_match:
            size = max(size, int(size_match.group(1)))
        root_match = re.search(rb"/Root\s+(\d+\s+\d+\s+R)", head)
        if root_match:
            root = root_match.group(1).decode("ascii")
    lines.append(f"/Size {size}")
    lines.append(f"/Root {root}")
    if prev is not None:
        lines.append(f"/Prev {prev}")
    lines.extend([">>", ""])
    return "\n".join(lines).encode("ascii")


def xref_stream_dictionary(content: bytes, offset: int) -> bytes:
    """Bytes from ``offset`` up to the ``stream`` keyword, or empty if no object starts there."""
    if offset >= len(content) or OBJECT_HEADER_AT_RE.match(content, offset) is None:
        return b""
    end = content.find(b"stream", offset)
    return content[offset:end] if end >= 0 else content[offset:]


def is_xref_stream_at(content: bytes, offset: int) -> bool:
    return XREF_STREAM_TYPE_RE.search(xref_stream_dictionary(content, offset)) is not None


def points_at_xref_stream(content: bytes) -> bool:
    last = None
    for match in STARTXREF_RE.finditer(content):
        last = match
    return last is not None and is_xref_stream_at(content, int(last.group(1)))


def find_xref_stream_offset(body: bytes, objects: dict[int, ObjectLocation]) -> int | None:
    """Offset of the last complete cross-reference stream object in ``body``."""
    for location in sorted(objects.values(), key=lambda loc: loc.offset, reverse=True):
        if is_xref_stream_at(body, location.offset):
            return location.offset
    return None


def build_startxref(xref_offset: int) -> bytes:
    return f"startxref\n{xref_offset}\n%%EOF\n".encode("ascii")
