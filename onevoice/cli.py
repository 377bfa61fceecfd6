"""
Command-line interface for OneVoice.

Subcommands:
- onevoice serve: run the HTTP service (uvicorn)
- onevoice start / stop: create or end a session on a running service
- onevoice send: push stdin lines into a session
- onevoice listen: print a session's lines as they arrive
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Iterator, Sequence
from typing import Any, TextIO

from . import __version__
from .events import EventType, StreamEvent, parse_sse
from .exceptions import OneVoiceError

logger = logging.getLogger(__name__)

DEFAULT_URL = "http://localhost:8000"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for command-line use."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="onevoice",
        description="Live session broadcast: start sessions, push lines, listen.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # ============================================================================
    # serve subcommand
    # ============================================================================
    p_serve = subparsers.add_parser("serve", help="Run the HTTP service.")
    p_serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1).")
    p_serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000).")
    p_serve.add_argument("--reload", action="store_true", help="Reload on code changes.")
    p_serve.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Worker processes (use the redis store when > 1).",
    )

    # ============================================================================
    # client subcommands
    # ============================================================================
    def add_url(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "--url",
            default=DEFAULT_URL,
            help=f"Service base URL (default: {DEFAULT_URL}).",
        )

    p_start = subparsers.add_parser("start", help="Start a session and print its code.")
    add_url(p_start)
    p_start.add_argument("--code", default=None, help="Requested code (generated if omitted).")
    p_start.add_argument("--lang", default=None, help="Input language tag (default: AUTO).")
    p_start.add_argument(
        "--replace",
        action="store_true",
        help="Supersede a live session with the requested code.",
    )

    p_stop = subparsers.add_parser("stop", help="End a session.")
    add_url(p_stop)
    p_stop.add_argument("code", help="Session code.")

    p_send = subparsers.add_parser("send", help="Push each stdin line into a session.")
    add_url(p_send)
    p_send.add_argument("code", help="Session code.")

    p_listen = subparsers.add_parser("listen", help="Print a session's lines as they arrive.")
    add_url(p_listen)
    p_listen.add_argument("code", help="Session code.")
    p_listen.add_argument(
        "--kind",
        default="events",
        choices=["events", "audio"],
        help="Which log to follow (default: events).",
    )
    p_listen.add_argument("--json", action="store_true", help="Print raw JSON entries.")

    return parser


# =============================================================================
# Client helpers
# =============================================================================


def _client(url: str) -> Any:
    import httpx

    return httpx.Client(base_url=url.rstrip("/"), timeout=httpx.Timeout(10.0, read=None))


def _check(response: Any) -> dict[str, Any]:
    """Return the JSON body, raising OneVoiceError on an error response."""
    try:
        body = response.json()
    except ValueError:
        body = {}
    if response.status_code >= 400:
        error = body.get("error") or f"HTTP {response.status_code}"
        detail = body.get("detail") or ""
        raise OneVoiceError(f"{error}: {detail}" if detail else str(error))
    return body


def iter_sse_events(lines: Iterator[str]) -> Iterator[StreamEvent]:
    """Group streamed SSE lines into frames and yield parsed events."""
    frame: list[str] = []
    for line in lines:
        if line:
            frame.append(line)
            continue
        if frame:
            yield from parse_sse("\n".join(frame))
            frame = []
    if frame:
        yield from parse_sse("\n".join(frame))


def _format_entry(entry: dict[str, Any]) -> str:
    if "text" in entry:
        text = str(entry["text"])
        translations = entry.get("tx") or {}
        if translations:
            rendered = " | ".join(f"{lang}: {value}" for lang, value in translations.items())
            return f"{text}  [{rendered}]"
        return text
    return f"<{entry.get('contentType', 'audio')}: {len(str(entry.get('data', '')))} base64 chars>"


# =============================================================================
# Command handlers
# =============================================================================


def _handle_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run(
        "onevoice.service:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=None if args.reload else args.workers,
        log_level=args.log_level.lower(),
    )
    return 0


def _handle_start(args: argparse.Namespace, out: TextIO) -> int:
    payload: dict[str, Any] = {"replace": args.replace}
    if args.code:
        payload["code"] = args.code
    if args.lang:
        payload["inputLang"] = args.lang
    with _client(args.url) as client:
        body = _check(client.post("/api/session", json=payload))
    print(body["code"], file=out)
    return 0


def _handle_stop(args: argparse.Namespace, out: TextIO) -> int:
    with _client(args.url) as client:
        _check(client.delete("/api/session", params={"code": args.code}))
    print(f"[done] Ended session {args.code.upper()}", file=out)
    return 0


def _handle_send(args: argparse.Namespace, stdin: TextIO, out: TextIO) -> int:
    sent = 0
    with _client(args.url) as client:
        for raw in stdin:
            text = raw.strip()
            if not text:
                continue
            _check(client.post("/api/ingest", json={"code": args.code, "text": text}))
            sent += 1
    print(f"[done] Sent {sent} lines to {args.code.upper()}", file=out)
    return 0


def _handle_listen(args: argparse.Namespace, out: TextIO) -> int:
    params = {"code": args.code, "kind": args.kind}
    with _client(args.url) as client:
        with client.stream("GET", "/api/stream", params=params) as response:
            if response.status_code >= 400:
                response.read()
                _check(response)
            for event in iter_sse_events(response.iter_lines()):
                if event.type == EventType.LINE:
                    if args.json:
                        print(json.dumps(event.data, ensure_ascii=False), file=out)
                    else:
                        print(_format_entry(event.data), file=out)
                    out.flush()
                elif event.type == EventType.ERROR:
                    logger.warning("Stream error: %s", event.data.get("message"))
                elif event.type == EventType.END:
                    print("[end] Session ended", file=out)
                    break
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """
    Main CLI entry point.

    Returns:
        0 on success, 1 on OneVoiceError or HTTP failure, 2 on unexpected error.
    """
    import httpx

    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        if args.command == "serve":
            return _handle_serve(args)
        if args.command == "start":
            return _handle_start(args, sys.stdout)
        if args.command == "stop":
            return _handle_stop(args, sys.stdout)
        if args.command == "send":
            return _handle_send(args, sys.stdin, sys.stdout)
        if args.command == "listen":
            return _handle_listen(args, sys.stdout)
        parser.error(f"Unknown command: {args.command}")

    except (OneVoiceError, httpx.HTTPError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        return 130

    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        return 2

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
