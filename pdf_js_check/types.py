from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class XrefEntry:
    object_id: int
    byte_offset: int
    in_use: bool
    generation: int = 0
    # Containing object stream for compressed objects; offset is 0 then.
    stream_id: int | None = None

    @property
    def compressed(self) -> bool:
        return self.stream_id is not None


@dataclass
class CandidateObject:
    object_id: str
    generation: int
    raw_span: tuple[int, int] | None
    passed_prefilter: bool
    _decoder: Callable[[], Any] | None = field(default=None, repr=False, compare=False)

    def decode(self) -> Any:
        if self._decoder is None:
            return None
        return self._decoder()


@dataclass(frozen=True)
class RepairInsertion:
    position: int
    inserted_text: bytes


class DetectionState(str, Enum):
    START = "start"
    TRY_ORIGINAL = "try_original"
    NEED_REPAIR = "need_repair"
    REPAIRING = "repairing"
    REPAIR_FAILED = "repair_failed"
    REPAIRED = "repaired"
    TRY_REPAIRED = "try_repaired"
    DETECTED = "detected"
    NOT_DETECTED = "not_detected"


@dataclass(frozen=True)
class DetectionResult:
    detected: bool
    used_repair: bool
    states: tuple[DetectionState, ...] = ()

    def as_dict(self) -> dict[str, Any]:
        return {
            "detected": self.detected,
            "used_repair": self.used_repair,
            "states": [s.value for s in self.states],
        }
