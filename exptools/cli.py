from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import load_settings
from .errors import ToolError, ValidationError
from .tools import TOOLS, discovery, run_tool
from .utils import to_jsonable

logger = logging.getLogger(__name__)


def _read_payload(raw: Optional[str]) -> Dict[str, Any]:
    """Inline JSON, or @path to a JSON file."""
    if not raw:
        return {}
    text = raw
    if raw.startswith("@"):
        try:
            text = Path(raw[1:]).read_text(encoding="utf-8")
        except OSError as exc:
            raise ValidationError(f"cannot read payload file {raw[1:]!r}: {exc.strerror}", field="payload")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"payload is not valid JSON: {exc.msg} (position {exc.pos})", field="payload")
    if not isinstance(payload, dict):
        raise ValidationError("payload must be a JSON object", field="payload")
    return payload


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="exptools", description="Experimentation helper tools.")
    ap.add_argument("--log-level", type=str.upper, default=None,
                    choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                    help="Defaults to EXPTOOLS_LOG_LEVEL or INFO")
    sub = ap.add_subparsers(dest="command", required=True)

    sub.add_parser("discovery", help="Print the tool manifest")

    run = sub.add_parser("run", help="Run one tool on a JSON payload")
    run.add_argument("name", type=str, help=f"Tool name ({', '.join(TOOLS)})")
    run.add_argument("--payload", type=str, default=None, help="JSON object, or @file.json")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings()
    except ToolError as exc:
        print(json.dumps({"error": exc.to_dict()}), file=sys.stderr)
        return 2

    logging.basicConfig(
        level=(args.log_level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "discovery":
        print(json.dumps(discovery(), indent=2, ensure_ascii=False))
        return 0

    try:
        result = run_tool(args.name, _read_payload(args.payload), settings=settings)
    except ToolError as exc:
        logger.warning("%s failed: %s", args.name, exc)
        print(json.dumps({"error": exc.to_dict()}, ensure_ascii=False), file=sys.stderr)
        return 2
    except LookupError as exc:
        print(json.dumps({"error": {"type": "ToolNotFound", "field": None, "message": str(exc)}}), file=sys.stderr)
        return 1

    print(json.dumps(to_jsonable(result), indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
