"""CLI entry point that replaces a session's saved patterns with an export file."""
from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import Sequence

from domain.errors import MalformedInputError
from domain.models import PersistedSession
from domain.persistence import PatternLibraryFileAdapter, SessionFileAdapter
from session import SessionEngine


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Validate a pattern export and load it into a session document.",
    )
    parser.add_argument(
        "--patterns-file",
        type=Path,
        required=True,
        help="JSON array of [name, record] pairs produced by export_pattern_library.",
    )
    parser.add_argument(
        "--session-file",
        type=Path,
        required=True,
        help="Session document to update; created with defaults when missing.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate the export without writing the session document.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Emit debug logging from the session engine.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(levelname)s] %(message)s",
    )
    patterns_file = args.patterns_file.expanduser().resolve()
    session_file = args.session_file.expanduser().resolve()
    if not patterns_file.exists():
        raise SystemExit(f"Patterns file '{patterns_file}' does not exist.")

    adapter = SessionFileAdapter(session_file.parent)
    try:
        record = adapter.load(session_file.name) if session_file.exists() else PersistedSession()
        engine = SessionEngine.from_record(record)
        count = engine.import_patterns(PatternLibraryFileAdapter.read(patterns_file))
    except MalformedInputError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    if not args.dry_run:
        adapter.save(engine.to_record(), session_file.name)
    summary = {
        "patterns_file": str(patterns_file),
        "session_file": str(session_file),
        "imported": count,
        "pattern_names": engine.library.names(),
        "written": not args.dry_run,
    }
    print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
