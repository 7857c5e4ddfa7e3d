"""Coordinates the gallery and the tunnel for one sharing session."""

import logging
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from quickshare.domain.errors import GalleryStartError
from quickshare.domain.models import FileRef, TunnelState
from quickshare.services.events import EventSink
from quickshare.services.gallery import GalleryServer
from quickshare.services.tunnel import TunnelSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShareStatus:
    """Point-in-time view of a sharing session."""

    running: bool
    token: str | None
    relay_url: str | None
    share_url: str | None
    elapsed_seconds: int
    tunnel_state: TunnelState
    file_count: int


@dataclass(frozen=True)
class RelayTarget:
    """Where and how to open the tunnel."""

    host: str
    user: str
    public_port: int


class ShareService:
    """Start and stop sharing a set of files through the relay."""

    def __init__(  # noqa: PLR0913
        self,
        gallery: GalleryServer,
        tunnel: TunnelSession,
        events: EventSink,
        relay: RelayTarget,
        local_port: int,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.gallery = gallery
        self.tunnel = tunnel
        self.events = events
        self.relay = relay
        self.local_port = local_port
        self._monotonic = monotonic
        self._lock = threading.Lock()
        self._started_at: float | None = None
        self._file_count = 0

    def start_sharing(self, refs: Sequence[FileRef]) -> ShareStatus:
        """Serve the files and open the tunnel; no-op while already sharing."""
        with self._lock:
            if self._started_at is not None:
                return self._status_locked()
            try:
                self.gallery.start(refs, self.local_port)
            except GalleryStartError:
                logger.warning("Gallery failed to start, aborting share")
                self._reset_locked()
                return self._status_locked()
            bound_port = self.gallery.port or self.local_port
            self.tunnel.start(
                self.relay.host, self.relay.user, self.relay.public_port, bound_port
            )
            self._started_at = self._monotonic()
            self._file_count = len(refs)
            self.events.on_log("Starting secure session...")
            return self._status_locked()

    def stop_sharing(self) -> None:
        """Tear down the gallery and the tunnel."""
        with self._lock:
            self._reset_locked()
        self.events.on_log("Service stopped.")

    def status(self) -> ShareStatus:
        """Return the current sharing status."""
        with self._lock:
            return self._status_locked()

    def _reset_locked(self) -> None:
        self.gallery.stop()
        self.tunnel.stop()
        self._started_at = None
        self._file_count = 0

    def _status_locked(self) -> ShareStatus:
        running = self._started_at is not None
        token = self.gallery.token if running else None
        relay_url = self.tunnel.relay_address if running else None
        share_url = f"{relay_url}/?token={token}" if relay_url and token else None
        elapsed = int(self._monotonic() - self._started_at) if running else 0
        return ShareStatus(
            running=running,
            token=token,
            relay_url=relay_url,
            share_url=share_url,
            elapsed_seconds=elapsed,
            tunnel_state=self.tunnel.state,
            file_count=self._file_count,
        )
