"""Local gallery listener lifecycle."""

import logging
import socket
import threading
from collections.abc import Callable, Iterable
from typing import Protocol

import uvicorn
from fastapi import FastAPI

from quickshare.adapters.file_source import FileSource
from quickshare.api.app import GalleryContext, create_app
from quickshare.domain.errors import GalleryStartError
from quickshare.domain.gallery import GallerySession
from quickshare.domain.models import FileRef, ShareSet
from quickshare.services.events import EventSink
from quickshare.services.thumbnails import ThumbnailGenerator
from quickshare.services.tokens import SessionTokenAuthority

logger = logging.getLogger(__name__)


class GallerySessionHolder:
    """Publishes the active gallery session to request handlers.

    Requests read the session exactly once, so each one sees either the old
    token and files or the new ones, never a mix.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._session: GallerySession | None = None

    def current(self) -> GallerySession | None:
        with self._lock:
            return self._session

    def publish(self, session: GallerySession) -> None:
        with self._lock:
            self._session = session

    def clear(self) -> GallerySession | None:
        with self._lock:
            previous, self._session = self._session, None
            return previous


class Listener(Protocol):
    """HTTP listener serving the gallery app."""

    @property
    def port(self) -> int:
        """Port the listener is bound to."""

    def start(self) -> None:
        """Begin accepting connections in the background."""

    def stop(self) -> None:
        """Stop accepting connections and shut down."""


ListenerFactory = Callable[[FastAPI, str, int], Listener]


class UvicornListener(Listener):
    """Listener running uvicorn on a background thread.

    The socket is bound up front so bind failures surface to the caller and
    port 0 resolves to a concrete port before serving starts.
    """

    def __init__(
        self, app: FastAPI, host: str, port: int, grace_seconds: float = 1.0
    ) -> None:
        self._socket = _bind_socket(host, port)
        self._grace_seconds = grace_seconds
        config = uvicorn.Config(
            app,
            lifespan="off",
            log_config=None,
            access_log=False,
            timeout_graceful_shutdown=max(1, round(grace_seconds)),
        )
        self._server = uvicorn.Server(config)
        self._thread: threading.Thread | None = None

    @property
    def port(self) -> int:
        return self._socket.getsockname()[1]

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self._server.run,
            kwargs={"sockets": [self._socket]},
            daemon=True,
            name="quickshare-gallery",
        )
        self._thread.start()

    def stop(self) -> None:
        self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(self._grace_seconds + 5.0)
            if self._thread.is_alive():
                logger.warning("Gallery listener did not shut down in time")
        self._socket.close()

    @classmethod
    def factory(cls, grace_seconds: float = 1.0) -> ListenerFactory:
        """Return a listener factory with a fixed shutdown grace period."""

        def build(app: FastAPI, host: str, port: int) -> Listener:
            return cls(app, host, port, grace_seconds=grace_seconds)

        return build


def _bind_socket(host: str, port: int) -> socket.socket:
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen(128)
    except OSError:
        sock.close()
        raise
    sock.set_inheritable(True)
    return sock


class GalleryServer:
    """Serve a read-only, token-gated view over one ShareSet at a time."""

    def __init__(  # noqa: PLR0913
        self,
        file_source: FileSource,
        events: EventSink,
        *,
        token_authority: SessionTokenAuthority | None = None,
        thumbnails: ThumbnailGenerator | None = None,
        bind_host: str = "0.0.0.0",  # noqa: S104
        download_chunk_size: int = 64 * 1024,
        listener_factory: ListenerFactory | None = None,
    ) -> None:
        self.events = events
        self.bind_host = bind_host
        self.token_authority = token_authority or SessionTokenAuthority()
        self.sessions = GallerySessionHolder()
        self.listener_factory = listener_factory or UvicornListener.factory()
        self.app = create_app(
            GalleryContext(
                sessions=self.sessions,
                file_source=file_source,
                thumbnails=thumbnails or ThumbnailGenerator(),
                token_authority=self.token_authority,
                events=events,
                download_chunk_size=download_chunk_size,
            )
        )
        self._lifecycle_lock = threading.Lock()
        self._listener: Listener | None = None

    @property
    def token(self) -> str | None:
        """Token of the running session, if any."""
        session = self.sessions.current()
        return session.token if session else None

    @property
    def port(self) -> int | None:
        """Bound port of the running listener, if any."""
        listener = self._listener
        return listener.port if listener else None

    @property
    def is_running(self) -> bool:
        return self._listener is not None

    def start(self, share_set: Iterable[FileRef], port: int) -> str:
        """Replace any running gallery with one serving ``share_set``."""
        with self._lifecycle_lock:
            self._stop_locked()
            snapshot = ShareSet(share_set)
            token = self.token_authority.generate()
            self.events.on_log(f"Starting local HTTP server on port {port}...")
            try:
                listener = self.listener_factory(self.app, self.bind_host, port)
            except OSError as exc:
                error = GalleryStartError(
                    f"Could not listen on {self.bind_host}:{port}: {exc}"
                )
                self.events.on_log(str(error))
                self.events.on_error(error)
                raise error from exc
            self.sessions.publish(GallerySession(token=token, share_set=snapshot))
            listener.start()
            self._listener = listener
            self.events.on_log(f"Session token: {token}")
            self.events.on_log(f"Shared files: {len(snapshot)}")
            return token

    def stop(self) -> None:
        """Stop serving and forget the current token and files."""
        with self._lifecycle_lock:
            self._stop_locked()

    def _stop_locked(self) -> None:
        self.sessions.clear()
        listener, self._listener = self._listener, None
        if listener is None:
            return
        self.events.on_log("Stopping HTTP server...")
        listener.stop()
