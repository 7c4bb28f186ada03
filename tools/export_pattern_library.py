"""CLI helper that writes a session's saved patterns to a shareable export file."""
from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import Sequence

from domain.errors import MalformedInputError
from domain.pattern_library import PatternLibrary
from domain.persistence import PatternLibraryFileAdapter, SessionFileAdapter


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Export the saved patterns of a session document as [name, record] pairs.",
    )
    parser.add_argument(
        "--session-file",
        type=Path,
        required=True,
        help="Path to the persisted session JSON document.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        required=True,
        help="Destination JSON file for the pattern export.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log recovery warnings while loading the session.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(levelname)s] %(message)s",
    )
    session_file = args.session_file.expanduser().resolve()
    if not session_file.exists():
        raise SystemExit(f"Session file '{session_file}' does not exist.")

    try:
        session = SessionFileAdapter(session_file.parent).load(session_file.name)
    except MalformedInputError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    library = PatternLibrary(session.saved_patterns)
    destination = PatternLibraryFileAdapter.write(library, args.output.expanduser().resolve())
    summary = {
        "session_file": str(session_file),
        "output": str(destination),
        "pattern_count": len(library),
        "pattern_names": library.names(),
    }
    print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
