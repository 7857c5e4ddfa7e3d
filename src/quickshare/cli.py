"""Command-line entrypoint for sharing files through the relay."""

import argparse
import sys
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from quickshare.adapters.file_source import LocalFileSource
from quickshare.app_logging import configure_logging
from quickshare.config import Settings
from quickshare.containers import build_container
from quickshare.services.events import EventSink


@dataclass
class ConsoleEventSink(EventSink):
    """Print the public share link once the relay assigns it."""

    token: Callable[[], str | None]
    out: TextIO | None = None

    def on_log(self, message: str) -> None:
        return None

    def on_status_changed(self, message: str) -> None:
        return None

    def on_url_assigned(self, url: str) -> None:
        link = f"{url}/?token={self.token()}"
        print(f"\nShare this link: {link}\n", file=self.out or sys.stdout, flush=True)

    def on_error(self, error: Exception) -> None:
        print(f"Error: {error}", file=self.out or sys.stdout, flush=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quickshare",
        description="Share files through a temporary public URL.",
    )
    parser.add_argument("files", nargs="+", type=Path, help="Files to share")
    parser.add_argument("--port", type=int, help="Local gallery port")
    parser.add_argument("--relay-host", help="Relay SSH host")
    parser.add_argument("--relay-user", help="Relay SSH user")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Share the given files until interrupted or the tunnel ends."""
    args = build_parser().parse_args(argv)
    missing = [path for path in args.files if not path.is_file()]
    if missing:
        for path in missing:
            print(f"Not a file: {path}", file=sys.stderr)
        return 2

    configure_logging()
    overrides = {
        key: value
        for key, value in {
            "local_port": args.port,
            "relay_host": args.relay_host,
            "relay_user": args.relay_user,
        }.items()
        if value is not None
    }
    settings = Settings(**overrides)
    container = build_container(settings)
    gallery = container.gallery_server
    container.event_log.subscribe(ConsoleEventSink(token=lambda: gallery.token))
    refs = [LocalFileSource.ref_for(path) for path in args.files]
    status = container.share_service.start_sharing(refs)
    if not status.running:
        return 1
    print(
        f"Gallery listening on port {container.gallery_server.port} "
        f"with {status.file_count} file(s). Press Ctrl+C to stop.",
        flush=True,
    )
    try:
        container.tunnel_session.join()
    except KeyboardInterrupt:
        pass
    finally:
        container.close_resources()
    return 0


if __name__ == "__main__":
    sys.exit(main())
