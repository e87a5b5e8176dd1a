"""CLI entry point for the JSON repair tool."""

from __future__ import annotations

import argparse
import json
import logging
import sys

from dotenv import load_dotenv

from src.models.defaults import DEFAULT_SHAPES, get_default_shape
from src.utils.json_repair import safe_parse_outcome


def main(argv: list[str] | None = None):
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Repair malformed JSON returned by a language model",
    )
    parser.add_argument("input", nargs="?", default="-",
                        help="File containing the raw response (default: stdin)")
    parser.add_argument("--shape", default="object", choices=sorted(DEFAULT_SHAPES),
                        help="Default shape to recover fields against")
    parser.add_argument("--max-patches", type=int, default=None,
                        help="Cap on positional patches (default: JSON_REPAIR_MAX_PATCHES or 5)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    parser.add_argument("--report", action="store_true",
                        help="Print the full repair outcome instead of the value")

    args = parser.parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%H:%M:%S",
    )

    if args.input == "-":
        raw = sys.stdin.read()
    else:
        with open(args.input, encoding="utf-8") as f:
            raw = f.read()

    outcome = safe_parse_outcome(raw, get_default_shape(args.shape), max_patches=args.max_patches)

    if args.report:
        print(outcome.model_dump_json(indent=2))
    else:
        print(json.dumps(outcome.value, indent=2, ensure_ascii=False))

    if outcome.used_default:
        print(f"\nNo JSON could be recovered; printed the default {args.shape!r} shape.",
              file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
