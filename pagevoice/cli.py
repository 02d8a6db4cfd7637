from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from pagevoice.adapters.factory import available_adapters
from pagevoice.core.errors import AdapterNotAvailableError, extract_error_message
from pagevoice.core.extractor import ViewportTextExtractor
from pagevoice.core.orchestrator import PlaybackOrchestrator
from pagevoice.core.snapshot import SnapshotDocument
from pagevoice.core.types import PlaybackState
from pagevoice.utils.audio_playback import audio_disabled_by_env
from pagevoice.utils.logger import configure_logging
from pagevoice.utils.reader_settings import ReaderSettings
from pagevoice.version import get_version


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False))


def _cmd_list_adapters() -> int:
    rows = [
        {"key": info.key, "name": info.name, "implemented": info.is_implemented}
        for info in available_adapters()
    ]
    print(json.dumps(rows, indent=2))
    return 0


def _settings_from_args(args: argparse.Namespace) -> ReaderSettings:
    settings = ReaderSettings.load()
    if args.adapter:
        settings.adapter = str(args.adapter).strip().lower()
    if args.max_chunks is not None:
        settings.whole_page_reading = False
        settings.max_chunks_per_pass = max(1, int(args.max_chunks))
    if args.no_advance:
        settings.auto_advance = False
    return settings


def _adapter_options(args: argparse.Namespace, settings: ReaderSettings) -> Dict[str, Any]:
    if settings.adapter != "mock":
        return {}
    return {
        "words_per_minute": settings.mock_words_per_minute,
        "time_scale": float(args.time_scale),
        "audible": bool(args.audible) and not audio_disabled_by_env(),
    }


def _cmd_chunks_only(document: SnapshotDocument, settings: ReaderSettings) -> int:
    extractor = ViewportTextExtractor(
        document,
        fallback_text_limit=settings.fallback_text_limit,
        chunk_text_limit=settings.chunk_text_limit,
    )
    chunks = extractor.extract_chunks_now()
    if not settings.whole_page_reading:
        chunks = chunks[: settings.max_chunks_per_pass]
    print(json.dumps([c.to_dict() for c in chunks], indent=2, ensure_ascii=False))
    return 0


def _cmd_read(document: SnapshotDocument, settings: ReaderSettings, args: argparse.Namespace) -> int:
    try:
        orchestrator = PlaybackOrchestrator.for_document(
            document,
            adapter_type=settings.adapter,
            settings=settings,
            **_adapter_options(args, settings),
        )
    except AdapterNotAvailableError as exc:
        print(f"[pagevoice-read] {exc}", file=sys.stderr)
        return 2

    last_phase: List[str] = []

    def _report(state: PlaybackState) -> None:
        if last_phase and last_phase[-1] == state.phase:
            return
        last_phase.append(state.phase)
        _print_json({"phase": state.phase, "error": state.error})

    orchestrator.subscribe(_report)
    try:
        asyncio.run(orchestrator.start_reading())
    except Exception as exc:
        print(
            f"[pagevoice-read] Playback failed: {extract_error_message(exc)}",
            file=sys.stderr,
        )
        return 1
    finally:
        state = orchestrator.get_state()
        played = len(getattr(orchestrator.adapter, "played", []))
        orchestrator.destroy()

    _print_json(
        {
            "status": "error" if state.error else "ok",
            "adapter": orchestrator.get_current_adapter_type(),
            "chunks_played": played,
            "pages_read": document.page_index + 1,
        }
    )
    return 1 if state.error else 0


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="pagevoice-read",
        description="Read snapshot pages of an e-book reader aloud.",
    )
    p.add_argument(
        "paths",
        nargs="*",
        help="Snapshot files (.json payloads or .html pages), one page each.",
    )
    p.add_argument("--adapter", default=None, help="Speech adapter key (default: from settings).")
    p.add_argument("--list-adapters", action="store_true", help="List speech adapters and exit.")
    p.add_argument(
        "--chunks-only",
        action="store_true",
        help="Print the chunks extracted from the first page as JSON and exit.",
    )
    p.add_argument(
        "--max-chunks",
        type=int,
        default=None,
        help="Read at most this many chunks per page.",
    )
    p.add_argument(
        "--time-scale",
        type=float,
        default=1.0,
        help="Speed factor for the mock adapter's utterance length.",
    )
    p.add_argument("--audible", action="store_true", help="Play mock tones on the sound card.")
    p.add_argument("--no-advance", action="store_true", help="Do not turn pages.")
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--version", action="version", version=f"%(prog)s {get_version()}")
    return p


def main(argv: Optional[list[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    args = _build_parser().parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    if args.list_adapters:
        return _cmd_list_adapters()
    if not args.paths:
        print("[pagevoice-read] No snapshot files given.", file=sys.stderr)
        return 2

    try:
        document = SnapshotDocument.from_files(args.paths)
    except (OSError, ValueError) as exc:
        print(f"[pagevoice-read] Cannot load snapshots: {exc}", file=sys.stderr)
        return 2

    settings = _settings_from_args(args)
    if args.chunks_only:
        return _cmd_chunks_only(document, settings)
    return _cmd_read(document, settings, args)


if __name__ == "__main__":
    raise SystemExit(main())
