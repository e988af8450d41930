"""
Command-Line Interface for voice-proxy.

Runs the generation core without the HTTP server, or starts the server.

Usage Examples:
    # Configured speakers and their voice ids
    voice-proxy speakers --json

    # Dry-run chunking (no provider calls)
    voice-proxy chunk --text "First sentence. Second sentence." --max-chars 500
    voice-proxy chunk --file article.txt --json

    # One provider call
    voice-proxy synth --text "Hello there." --speaker sam_altman

    # Warmup over the most recent comments
    voice-proxy warmup --limit 3

    # Serve the API
    voice-proxy serve --host 0.0.0.0 --port 3001

Environment Variables:
    VOICE_PROXY_SETTINGS: Settings file (default config/settings.yaml)
    PPIO_API_TOKEN: Provider token; without it the provider runs in mock mode
    ENABLE_MOCK_MODE: Force mock mode
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

from voice_proxy.core.config import ServiceConfig, Settings, apply_env_overrides, default_settings_path, load_settings
from voice_proxy.core.errors import VoiceProxyError
from voice_proxy.core.logging import configure_logging, get_logger, info, set_request_id
from voice_proxy.tts.chunker import chunk_text


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="voice-proxy", description="voice-proxy CLI")
    parser.add_argument("--settings", help="Settings file (default: VOICE_PROXY_SETTINGS or config/settings.yaml)")
    sub = parser.add_subparsers(dest="command", required=True)

    p_speakers = sub.add_parser("speakers", help="List configured speakers")
    p_speakers.add_argument("--json", action="store_true", help="Print JSON")

    p_chunk = sub.add_parser("chunk", help="Dry-run the text chunker")
    p_chunk.add_argument("text_pos", nargs="?", help="Text to chunk (positional)")
    p_chunk.add_argument("--text", help="Text to chunk")
    p_chunk.add_argument("--file", help="Read text from a file")
    p_chunk.add_argument("--max-chars", type=int, help="Chunk bound (default from settings)")
    p_chunk.add_argument("--json", action="store_true", help="Print JSON")

    p_synth = sub.add_parser("synth", help="Synthesize one text")
    p_synth.add_argument("text_pos", nargs="?", help="Text to synthesize (positional)")
    p_synth.add_argument("--text", help="Text to synthesize")
    p_synth.add_argument("--speaker", required=True, help="Speaker id")
    p_synth.add_argument("--mock", action="store_true", help="Force mock mode")
    p_synth.add_argument("--json", action="store_true", help="Print JSON")

    p_warmup = sub.add_parser("warmup", help="Generate audio for the most recent comments")
    p_warmup.add_argument("--limit", type=int, help="Number of comments (capped)")
    p_warmup.add_argument("--json", action="store_true", help="Print JSON")

    p_serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    p_serve.add_argument("--host", default="0.0.0.0")
    p_serve.add_argument("--port", type=int, default=3001)
    p_serve.add_argument("--reload", action="store_true")

    return parser.parse_args(argv)


def _load(path: Optional[str]) -> Settings:
    """Settings from ``path``; a missing default file falls back to defaults."""
    if path:
        return load_settings(path)
    default = default_settings_path()
    if Path(default).exists():
        return load_settings(default)
    return Settings(raw=apply_env_overrides({}))


def _read_text(args: argparse.Namespace) -> str:
    text = args.text or args.text_pos
    if getattr(args, "file", None):
        if text:
            raise SystemExit("Use --file without --text or positional text.")
        return Path(args.file).read_text(encoding="utf-8")
    if not text:
        raise SystemExit("Provide --text or a positional text.")
    return text


def _emit(payload: Dict[str, Any], as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(payload)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code (0 for success, 1 for a reported failure).
    """
    args = _parse_args(argv)

    if args.command == "serve":
        import uvicorn
        uvicorn.run("voice_proxy.main:app", host=args.host, port=args.port, reload=args.reload)
        return 0

    configure_logging()
    log = get_logger("voice-proxy.cli")
    set_request_id(str(uuid4())[:12])

    settings = _load(args.settings)

    if args.command == "chunk":
        max_chars = args.max_chars or ServiceConfig.from_settings(settings).chunking.max_chars
        result = chunk_text(_read_text(args), max_chars)
        payload = {
            "ok": True,
            "dry_run": True,
            "max_chars": max_chars,
            "count": len(result),
            "chunks": [{"index": i, "chars": len(c), "text": c} for i, c in result.numbered()],
        }
        _emit(payload, args.json)
        print("DRY_RUN_OK")
        return 0

    if args.command == "synth" and args.mock:
        settings.raw.setdefault("provider", {})["mock_mode"] = True

    from voice_proxy.services.voice_service import VoiceService
    service = VoiceService(settings)
    try:
        if args.command == "speakers":
            items = [s.to_dict() for s in service.speakers()]
            _emit({"ok": True, "mock_mode": service.mock_mode, "speakers": items}, args.json)
            return 0

        if args.command == "synth":
            text = _read_text(args)
            info(log, "synth_start", chars=len(text), speaker=args.speaker, mock=service.mock_mode)
            try:
                artifact = service.synthesize_text(text, args.speaker)
            except VoiceProxyError as e:
                _emit(e.to_dict(), args.json)
                return 1
            _emit({"ok": True, **artifact.to_dict()}, args.json)
            print("CLI_OK")
            return 0

        if args.command == "warmup":
            outcomes = service.warmup(args.limit)
            _emit({"ok": True, "results": [o.to_dict() for o in outcomes]}, args.json)
            print("CLI_OK")
            return 0
    finally:
        service.close()

    return 1


if __name__ == "__main__":
    raise SystemExit(main())
