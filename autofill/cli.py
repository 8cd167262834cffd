"""CLI for running an extraction result through the auto-fill engine offline."""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional


def _parse_day(value: str) -> datetime:
    try:
        return datetime.strptime(value, "%Y-%m-%d")
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}") from exc


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Preview the form writes an extraction result would produce.")
    parser.add_argument("extraction", help="Extraction result JSON path (label -> value, or a body with dataFields).")
    parser.add_argument("--form-type", help="Target form type, e.g. papers.")
    parser.add_argument("--category", help="Classifier category, used when --form-type is omitted.")
    parser.add_argument("--subcategory", help="Classifier subcategory, used when --form-type is omitted.")
    parser.add_argument("--options", help="Dropdown options JSON path: {field: [{id, name}, ...]}.")
    parser.add_argument("--current", help="Current form values JSON path.")
    parser.add_argument("--overwrite", action="store_true", help="Write even over non-empty fields.")
    parser.add_argument("--now", type=_parse_day, help="Reference date YYYY-MM-DD for rejecting future dates.")
    args = parser.parse_args(argv)
    if not args.form_type and not (args.category and args.subcategory):
        parser.error("either --form-type or both --category and --subcategory are required")
    return args


def _read_json(path: Optional[str], default: Any) -> Any:
    if not path:
        return default
    with Path(path).open("r", encoding="utf-8") as handle:
        return json.load(handle)


def _extraction_fields(body: Any) -> Any:
    if isinstance(body, dict) and isinstance(body.get("dataFields"), dict):
        return body["dataFields"]
    return body


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    from engine import AutoFillError, autofill_engine

    try:
        extraction = _extraction_fields(_read_json(args.extraction, {}))
        options = _read_json(args.options, {})
        current: Dict[str, Any] = _read_json(args.current, {})
    except (OSError, ValueError) as exc:
        print(f"Cannot read input: {exc}", file=sys.stderr)
        return 1

    try:
        if args.form_type:
            form_type = args.form_type
        else:
            form_type = autofill_engine.resolve_form_type(args.category, args.subcategory)
        if form_type is None:
            print(f"No form type for {args.category!r} / {args.subcategory!r}", file=sys.stderr)
            return 2
        result = autofill_engine.plan(
            form_type,
            extraction,
            current,
            dropdown_options=options,
            overwrite=args.overwrite,
            now=args.now,
        )
    except AutoFillError as exc:
        print(str(exc), file=sys.stderr)
        return 2

    output = {
        "form_type": result.form_type.value if result.form_type else None,
        "writes": result.writes,
        "highlighted": sorted(result.written_keys),
        "populated_count": result.populated_count,
        "message": result.message,
        "resolved": [
            {"key": item.key, "value": item.value, "label": item.source_label} for item in result.resolved
        ],
    }
    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
