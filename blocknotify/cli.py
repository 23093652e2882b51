from __future__ import annotations

import argparse
import signal
import sys
from typing import List, Optional

from .config import Settings
from .dispatcher import Dispatcher
from .errors import BlockNotifyError, DecodeError
from .logging_config import setup_logging
from .render import RenderedView, RenderMode, describe
from .transport import ZmqSubscriber

# A raw block is shown as its 80-byte header, in hex.
BLOCK_HEADER_HEX = 160


def _print_view(view: RenderedView) -> None:
    print(f"- {describe(view.topic)} ({view.sequence}) -")
    value = view.value
    if isinstance(value, bytes):
        # raw mode: payload bytes go to stdout as-is, one message per line
        sys.stdout.flush()
        sys.stdout.buffer.write(value + b"\n")
        sys.stdout.buffer.flush()
        return
    if view.topic == "rawblock" and view.mode is RenderMode.HEX:
        value = value[:BLOCK_HEADER_HEX]
    print(value)


def _print_decode_error(topic: Optional[str], error: DecodeError) -> None:
    print(f"! malformed message (topic={topic}): {error}")


def _print_gap(topic: str, expected: int, actual: int) -> None:
    print(f"! {topic}: expected sequence {expected}, got {actual}")


def _listen(settings: Settings, show_gaps: bool) -> int:
    dispatcher = Dispatcher(
        on_decode_error=_print_decode_error,
        on_gap=_print_gap,
        on_render=_print_view,
        render_mode=settings.render_mode,
        track_gaps=settings.track_gaps and show_gaps,
        wraparound=settings.sequence_wraparound,
        poll_interval_ms=settings.poll_interval_ms,
    )
    previous = signal.signal(signal.SIGINT, lambda *_: dispatcher.stop())
    try:
        with ZmqSubscriber.connect(settings.endpoint, settings.topics, **settings.transport_options()) as transport:
            dispatcher.run(transport)
    except BlockNotifyError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    finally:
        signal.signal(signal.SIGINT, previous)
    return 0


def _serve(settings: Settings) -> int:
    import uvicorn

    from .app import create_app

    uvicorn.run(create_app(settings), host=settings.http_host, port=settings.http_port, log_config=None)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="blocknotify", description="Decode a daemon's ZMQ notification feed.")
    sub = parser.add_subparsers(dest="command", required=True)

    listen = sub.add_parser("listen", help="print notifications to the console")
    listen.add_argument("endpoint", nargs="?", help="e.g. tcp://127.0.0.1:28332")
    listen.add_argument("-t", "--topic", action="append", dest="topics", help="topic prefix (repeatable)")
    listen.add_argument("-m", "--mode", choices=[m.value for m in RenderMode], help="payload rendering")
    listen.add_argument("--no-gaps", action="store_true", help="do not report sequence gaps")

    serve = sub.add_parser("serve", help="run the HTTP/WebSocket service")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)
    serve.add_argument("endpoint", nargs="?")
    serve.add_argument("-t", "--topic", action="append", dest="topics")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    overrides = {}
    if args.endpoint:
        overrides["endpoint"] = args.endpoint
    if args.topics:
        overrides["topics"] = args.topics
    if args.command == "listen" and args.mode:
        overrides["render_mode"] = RenderMode(args.mode)
    if args.command == "serve":
        if args.host:
            overrides["http_host"] = args.host
        if args.port:
            overrides["http_port"] = args.port
    settings = Settings(**overrides)
    setup_logging(settings)

    if args.command == "serve":
        return _serve(settings)
    return _listen(settings, show_gaps=not args.no_gaps)


if __name__ == "__main__":
    sys.exit(main())
