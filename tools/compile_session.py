"""Print the program a session document composes to, optionally overriding its mix."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys
from typing import Sequence

from domain.errors import SessionError
from domain.models import PersistedSession
from domain.persistence import SessionFileAdapter
from session import SessionEngine
from session.engine import VISUALIZERS


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Compose the program text for a session document without an evaluator.",
    )
    parser.add_argument(
        "--session-file",
        type=Path,
        help="Persisted session JSON; the default four-track session is used when omitted.",
    )
    parser.add_argument(
        "--track",
        action="append",
        default=[],
        metavar="TRACK_ID",
        help="Mix this track instead of the stored selection (repeatable).",
    )
    parser.add_argument(
        "--preset",
        action="append",
        default=[],
        metavar="KEY",
        help="Mix this built-in preset instead of the stored selection (repeatable).",
    )
    parser.add_argument(
        "--saved",
        action="append",
        default=[],
        metavar="NAME",
        help="Mix this saved pattern instead of the stored selection (repeatable).",
    )
    parser.add_argument(
        "--all-tracks",
        action="store_true",
        help="Mix every audible track with active steps.",
    )
    parser.add_argument("--bpm", type=float, help="Override the session tempo.")
    parser.add_argument(
        "--no-tempo",
        action="store_true",
        help="Omit the tempo statement from the program.",
    )
    parser.add_argument(
        "--effects",
        action="store_true",
        help="Append the lpf/lpq/room/delay effect chain.",
    )
    parser.add_argument(
        "--visualizer",
        choices=VISUALIZERS,
        help="Append a visualizer call to the program.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        help="Write the program to this file instead of stdout.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Emit debug logging from the session engine.",
    )
    return parser.parse_args(argv)


def _load_record(path: Path | None) -> PersistedSession:
    if path is None:
        return PersistedSession()
    session_file = path.expanduser().resolve()
    if not session_file.exists():
        raise SystemExit(f"Session file '{session_file}' does not exist.")
    return SessionFileAdapter(session_file.parent).load(session_file.name)


def _build_program(engine: SessionEngine, args: argparse.Namespace) -> str:
    if args.bpm is not None:
        engine.set_bpm(args.bpm)
    if args.no_tempo:
        engine.set_bpm_enabled(False)
    if args.effects:
        engine.set_effects_enabled(True)
    if args.visualizer and engine.synth_params.visualizer != args.visualizer:
        engine.toggle_visualizer(args.visualizer)

    if args.all_tracks:
        engine.generate_sequencer_code()
    elif args.track or args.preset or args.saved:
        engine.load_code("")
        for track_id in args.track:
            engine.toggle_track_mix(track_id)
        for key in args.preset:
            engine.set_preset_selected(key, True)
        for name in args.saved:
            engine.toggle_saved_mix(name)
    return engine.recompose().program


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(levelname)s] %(message)s",
    )
    try:
        engine = SessionEngine.from_record(_load_record(args.session_file))
        program = _build_program(engine, args)
    except SessionError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    if not program:
        print("Nothing to play: no selected source has active content.", file=sys.stderr)
        return 1
    if args.output is not None:
        destination = args.output.expanduser().resolve()
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(program + "\n", encoding="utf-8")
        print(f"Wrote program to {destination}")
    else:
        print(program)
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
