"""JavaScript detection workflow.

1. Scan the original file and classify candidate objects.
2. If the structure cannot be read, repair it.
3. Scan the repaired bytes again from a scoped temporary file.
4. If repair or the second scan fails, log it and report no JavaScript.
"""

from __future__ import annotations

import json
import logging
import tempfile
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .classifier import JsIndicatorClassifier
from .decoder import PdfDecoder
from .errors import RepairError
from .raw_scanner import DEFAULT_PREFILTER_MARKERS, RawObjectScanner
from .repairer import StructuralRepairer
from .types import DetectionResult, DetectionState

TERMINAL_STATES = frozenset({DetectionState.DETECTED, DetectionState.NOT_DETECTED})


@dataclass(frozen=True)
class DetectorConfig:
    strict: bool = True
    prefilter_markers: tuple[bytes, ...] = DEFAULT_PREFILTER_MARKERS
    scan_object_streams: bool = True
    max_depth: int = 64
    temp_prefix: str = "pdf_js_check_"


def default_config(strict: bool = True) -> DetectorConfig:
    return DetectorConfig(strict=strict)


def merge_custom_markers(config: DetectorConfig, custom_path: str | None) -> DetectorConfig:
    if not custom_path:
        return config

    payload = _load_markers_file(custom_path)
    markers = list(config.prefilter_markers)
    for value in payload.get("markers", []):
        if isinstance(value, str) and value.strip():
            markers.append(value.strip().encode("latin-1"))
    return replace(config, prefilter_markers=tuple(dict.fromkeys(markers)))


def _load_markers_file(path: str) -> dict[str, Any]:
    data = Path(path).read_text(encoding="utf-8")
    suffix = Path(path).suffix.lower()
    if suffix in {".yaml", ".yml"}:
        try:
            import yaml  # type: ignore
        except ImportError as exc:
            raise RuntimeError("YAML marker file requires pyyaml installed.") from exc
        parsed = yaml.safe_load(data)
    else:
        parsed = json.loads(data)
    return parsed if isinstance(parsed, dict) else {}


@dataclass
class _DetectionRun:
    path: Path
    original: bytes = b""
    repaired: bytes = b""
    used_repair: bool = False
    repair_passes: list[str] = field(default_factory=list)
    states: list[DetectionState] = field(default_factory=list)


class PdfJavaScriptDetector:
    def __init__(self, config: DetectorConfig | None = None, logger: logging.Logger | None = None) -> None:
        self.config = config or default_config()
        self.logger = logger or logging.getLogger(__name__)
        self.scanner = RawObjectScanner(
            decoder=PdfDecoder(strict=self.config.strict),
            markers=self.config.prefilter_markers,
            scan_object_streams=self.config.scan_object_streams,
        )
        self.repairer = StructuralRepairer()
        self.classifier = JsIndicatorClassifier(max_depth=self.config.max_depth)
        self._handlers: dict[DetectionState, Callable[[_DetectionRun], DetectionState]] = {
            DetectionState.START: self._start,
            DetectionState.TRY_ORIGINAL: self._try_original,
            DetectionState.NEED_REPAIR: self._need_repair,
            DetectionState.REPAIRING: self._repairing,
            DetectionState.REPAIR_FAILED: self._repair_failed,
            DetectionState.REPAIRED: self._repaired,
            DetectionState.TRY_REPAIRED: self._try_repaired,
        }

    def detect_javascript(self, file_path: str | Path) -> bool:
        return self.detect(file_path).detected

    def detect(self, file_path: str | Path) -> DetectionResult:
        run = _DetectionRun(path=Path(file_path))
        state = DetectionState.START
        while True:
            run.states.append(state)
            if state in TERMINAL_STATES:
                break
            state = self._handlers[state](run)
        return DetectionResult(
            detected=state is DetectionState.DETECTED,
            used_repair=run.used_repair,
            states=tuple(run.states),
        )

    def scan_file(self, file_path: str | Path) -> bool:
        """Scan one file and classify its candidates; raises ScanError if the structure is unreadable."""
        data = Path(file_path).read_bytes()
        return self.scanner.has_matching_object(data, self.classifier.contains_javascript)

    def _start(self, run: _DetectionRun) -> DetectionState:
        if not run.path.is_file():
            self.logger.error("File not found", extra={"context": {"file": str(run.path)}})
            raise FileNotFoundError(f"File not found: {run.path}")
        return DetectionState.TRY_ORIGINAL

    def _try_original(self, run: _DetectionRun) -> DetectionState:
        try:
            found = self.scan_file(run.path)
        except Exception as exc:
            self.logger.warning(
                "Original PDF parsing failed, attempting repair",
                extra={"context": {"file": str(run.path), "error": str(exc)}},
            )
            return DetectionState.NEED_REPAIR
        return DetectionState.DETECTED if found else DetectionState.NOT_DETECTED

    def _need_repair(self, run: _DetectionRun) -> DetectionState:
        run.used_repair = True
        try:
            run.original = run.path.read_bytes()
        except OSError as exc:
            self.logger.error(
                "Could not read PDF for repair",
                extra={"context": {"file": str(run.path), "error": str(exc)}},
            )
            return DetectionState.REPAIR_FAILED
        return DetectionState.REPAIRING

    def _repairing(self, run: _DetectionRun) -> DetectionState:
        try:
            run.repaired, run.repair_passes = self.repairer.repair_with_record(run.original)
        except RepairError as exc:
            self.logger.error(
                "PDF repair failed",
                extra={"context": {"file": str(run.path), "error": str(exc)}},
            )
            return DetectionState.REPAIR_FAILED
        if not run.repair_passes:
            self.logger.warning(
                "No repair pass applied, repaired PDF is identical to the original",
                extra={"context": {"file": str(run.path)}},
            )
        return DetectionState.REPAIRED

    def _repair_failed(self, run: _DetectionRun) -> DetectionState:
        # A file too corrupted to repair is reported as carrying no JavaScript.
        return DetectionState.NOT_DETECTED

    def _repaired(self, run: _DetectionRun) -> DetectionState:
        return DetectionState.TRY_REPAIRED

    def _try_repaired(self, run: _DetectionRun) -> DetectionState:
        try:
            with tempfile.TemporaryDirectory(prefix=self.config.temp_prefix) as td:
                temp_path = Path(td) / "repaired.pdf"
                temp_path.write_bytes(run.repaired)
                found = self.scan_file(temp_path)
        except Exception as exc:
            self.logger.error(
                "Repaired PDF parsing failed",
                extra={"context": {"file": str(run.path), "error": str(exc)}},
            )
            self.logger.error(
                "JavaScript detection failed - PDF is too corrupted to parse safely",
                extra={"context": {"file": str(run.path), "passes": run.repair_passes}},
            )
            return DetectionState.NOT_DETECTED
        return DetectionState.DETECTED if found else DetectionState.NOT_DETECTED


def detect_javascript(file_path: str | Path, config: DetectorConfig | None = None) -> bool:
    return PdfJavaScriptDetector(config).detect_javascript(file_path)
