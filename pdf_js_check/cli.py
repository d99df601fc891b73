from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace

from .detector import PdfJavaScriptDetector, default_config, merge_custom_markers


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pdf-js-check",
        description="Detect embedded JavaScript in PDFs, repairing broken structure when needed.",
    )
    parser.add_argument("pdf_paths", nargs="+", help="Path(s) to the PDF(s) to scan.")
    parser.add_argument(
        "--markers",
        help="Path to JSON/YAML file with extra pre-filter markers.",
    )
    parser.add_argument(
        "--no-object-streams",
        dest="scan_object_streams",
        action="store_false",
        help="Skip objects stored inside compressed object streams.",
    )
    parser.add_argument(
        "--lenient",
        action="store_true",
        help="Let the PDF reader recover from structural errors itself instead of repairing them.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit JSON output.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log repair and parse diagnostics to stderr.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(levelname)s %(name)s: %(message)s %(context)s", defaults={"context": ""})
    )
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, handlers=[handler])

    try:
        config = default_config(strict=not args.lenient)
        config = merge_custom_markers(config, args.markers)
    except Exception as exc:
        _emit_error(f"Failed to load marker config: {exc}", as_json=args.json)
        return 2

    config = replace(config, scan_object_streams=args.scan_object_streams)
    detector = PdfJavaScriptDetector(config)

    results: list[dict[str, object]] = []
    exit_code = 0
    for path in args.pdf_paths:
        try:
            result = detector.detect(path)
        except FileNotFoundError as exc:
            results.append({"file": path, "error": str(exc)})
            exit_code = 2
            continue
        results.append({"file": path, **result.as_dict()})
        if result.detected and exit_code == 0:
            exit_code = 1

    if args.json:
        print(json.dumps(results, ensure_ascii=False, indent=2))
    else:
        for item in results:
            if "error" in item:
                print(f"Error: {item['error']}", file=sys.stderr)
                continue
            verdict = "JavaScript detected" if item["detected"] else "clean"
            repaired = " (after repair)" if item["used_repair"] else ""
            print(f"{item['file']}: {verdict}{repaired}")
    return exit_code


def _emit_error(message: str, as_json: bool) -> None:
    if as_json:
        print(json.dumps({"error": message}, ensure_ascii=False))
    else:
        print(f"Error: {message}", file=sys.stderr)


if __name__ == "__main__":
    raise SystemExit(main())
