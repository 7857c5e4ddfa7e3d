"""Reverse tunnel session lifecycle."""

import asyncio
import logging
import threading
from dataclasses import dataclass, field

from quickshare.adapters.relay_client import (
    RelayChannel,
    RelayClient,
    RelayConnection,
)
from quickshare.domain.errors import (
    ForwardingError,
    QuickShareError,
    StreamReadError,
    TunnelConnectionError,
)
from quickshare.domain.models import CONNECTED_STATES, STARTABLE_STATES, TunnelState
from quickshare.services.events import EventSink
from quickshare.services.relay_output import (
    DEFAULT_RELAY_DOMAIN,
    extract_relay_url,
    sanitize_line,
)

logger = logging.getLogger(__name__)


@dataclass
class _Attempt:
    """Mutable state of one start() call, shared with its worker thread."""

    remote_host: str
    remote_user: str
    remote_port: int
    local_port: int
    cancelled: bool = False
    loop: asyncio.AbstractEventLoop | None = None
    task: asyncio.Task | None = None
    thread: threading.Thread | None = None
    connection: RelayConnection | None = None
    channel: RelayChannel | None = None
    relay_address: str | None = None
    done: threading.Event = field(default_factory=threading.Event)


class TunnelSession:
    """Own one outbound tunnel connection at a time.

    ``start`` returns immediately; the connect, forward and read sequence runs
    on a dedicated thread with its own event loop. ``stop`` cancels the
    worker task, which interrupts a pending relay read instead of waiting for
    the next line to arrive.
    """

    def __init__(  # noqa: PLR0913
        self,
        client: RelayClient,
        events: EventSink,
        *,
        ssh_port: int = 22,
        bind_host: str = "localhost",
        relay_domain: str = DEFAULT_RELAY_DOMAIN,
        connect_timeout: float = 30.0,
        stop_timeout: float = 5.0,
    ) -> None:
        self.client = client
        self.events = events
        self.ssh_port = ssh_port
        self.bind_host = bind_host
        self.relay_domain = relay_domain
        self.connect_timeout = connect_timeout
        self.stop_timeout = stop_timeout
        self._lock = threading.Lock()
        self._state = TunnelState.IDLE
        self._attempt: _Attempt | None = None

    @property
    def state(self) -> TunnelState:
        """Current lifecycle state."""
        with self._lock:
            return self._state

    @property
    def relay_address(self) -> str | None:
        """Public URL assigned during the current attempt, if any."""
        with self._lock:
            return self._attempt.relay_address if self._attempt else None

    def is_connected(self) -> bool:
        """Return true while the relay connection is up."""
        return self.state in CONNECTED_STATES

    def start(
        self, remote_host: str, remote_user: str, remote_port: int, local_port: int
    ) -> None:
        """Begin a tunnel attempt unless one is already live."""
        with self._lock:
            if self._state not in STARTABLE_STATES:
                return
            attempt = _Attempt(
                remote_host=remote_host,
                remote_user=remote_user,
                remote_port=remote_port,
                local_port=local_port,
            )
            self._attempt = attempt
            self._state = TunnelState.CONNECTING
            attempt.thread = threading.Thread(
                target=self._run_in_thread,
                args=(attempt,),
                daemon=True,
                name="quickshare-tunnel",
            )
        self.events.on_status_changed(TunnelState.CONNECTING)
        self.events.on_log("Starting tunnel setup...")
        self.events.on_log(
            f"Target: ssh -R {remote_port}:localhost:{local_port} "
            f"{remote_user}@{remote_host}"
        )
        attempt.thread.start()

    def stop(self) -> None:
        """Cancel the current attempt and release its resources."""
        with self._lock:
            attempt = self._attempt
            if attempt is not None:
                attempt.cancelled = True
                loop, task = attempt.loop, attempt.task
            else:
                loop, task = None, None
        if loop is not None and task is not None:
            try:
                loop.call_soon_threadsafe(task.cancel)
            except RuntimeError:
                logger.debug("Tunnel loop already closed")
        thread = attempt.thread if attempt is not None else None
        if (
            thread is not None
            and thread.ident is not None
            and thread is not threading.current_thread()
        ):
            thread.join(self.stop_timeout)
            if thread.is_alive():
                logger.warning("Tunnel worker did not exit in time")
        with self._lock:
            changed = self._state != TunnelState.CLOSED
            self._state = TunnelState.CLOSED
        if changed:
            self.events.on_status_changed(TunnelState.CLOSED)
        self.events.on_log("Tunnel stopped.")

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the current attempt to finish; return true if it did."""
        with self._lock:
            attempt = self._attempt
        if attempt is None:
            return True
        return attempt.done.wait(timeout)

    def _run_in_thread(self, attempt: _Attempt) -> None:
        try:
            asyncio.run(self._run(attempt))
        except Exception:
            logger.exception("Tunnel worker crashed")
            self._finish(attempt, TunnelState.FAILED)
        finally:
            attempt.done.set()

    async def _run(self, attempt: _Attempt) -> None:
        with self._lock:
            attempt.loop = asyncio.get_running_loop()
            attempt.task = asyncio.current_task()
            cancelled = attempt.cancelled
        if cancelled:
            self._finish(attempt, TunnelState.CLOSED)
            return

        terminal = TunnelState.CLOSED
        try:
            await self._connect(attempt)
            await self._forward(attempt)
            await self._open_channel(attempt)
            await self._read_loop(attempt)
        except asyncio.CancelledError:
            logger.debug("Tunnel attempt cancelled")
        except Exception as exc:
            if not attempt.cancelled:
                terminal = TunnelState.FAILED
                if not isinstance(exc, QuickShareError):
                    logger.exception("Unexpected tunnel failure")
                self.events.on_log(f"Error: {exc}")
                self.events.on_error(exc)
        finally:
            if terminal is TunnelState.CLOSED:
                self._transition(attempt, TunnelState.CLOSING)
            await self._release(attempt)
            self._finish(attempt, terminal)

    async def _connect(self, attempt: _Attempt) -> None:
        self.events.on_log(f"Connecting to {attempt.remote_host}...")
        try:
            attempt.connection = await asyncio.wait_for(
                self.client.connect(
                    attempt.remote_host,
                    self.ssh_port,
                    attempt.remote_user,
                    self.connect_timeout,
                ),
                timeout=self.connect_timeout,
            )
        except TimeoutError as exc:
            raise TunnelConnectionError(
                f"Timed out connecting to {attempt.remote_host} "
                f"after {self.connect_timeout:g}s"
            ) from exc
        except Exception as exc:
            raise TunnelConnectionError(
                f"Could not connect to {attempt.remote_host}: {exc}"
            ) from exc
        self._transition(attempt, TunnelState.CONNECTED)
        self.events.on_log("SSH session connected!")

    async def _forward(self, attempt: _Attempt) -> None:
        assert attempt.connection is not None
        try:
            await attempt.connection.forward_remote_port(
                self.bind_host, attempt.remote_port, "localhost", attempt.local_port
            )
        except Exception as exc:
            raise ForwardingError(
                f"Relay rejected forwarding of port {attempt.remote_port}: {exc}"
            ) from exc
        self._transition(attempt, TunnelState.FORWARDING_ESTABLISHED)
        self.events.on_log(
            f"Reverse forwarding configured "
            f"(-R {attempt.remote_port}:localhost:{attempt.local_port})"
        )

    async def _open_channel(self, attempt: _Attempt) -> None:
        assert attempt.connection is not None
        try:
            attempt.channel = await attempt.connection.open_shell()
        except Exception as exc:
            raise StreamReadError(f"Could not open relay session: {exc}") from exc
        self._transition(attempt, TunnelState.STREAMING)
        self.events.on_log("Reading server output...")

    async def _read_loop(self, attempt: _Attempt) -> None:
        assert attempt.channel is not None
        while not attempt.cancelled:
            try:
                raw = await attempt.channel.readline()
            except Exception as exc:
                raise StreamReadError(f"Relay output read failed: {exc}") from exc
            if not raw:
                self.events.on_log("Relay closed the session.")
                return
            self._handle_line(attempt, raw)

    def _handle_line(self, attempt: _Attempt, raw: str) -> None:
        line = sanitize_line(raw)
        if not line.strip():
            return
        self.events.on_log(f"[REMOTE]: {line}")
        url = extract_relay_url(line, self.relay_domain)
        if url is None:
            return
        with self._lock:
            if attempt.relay_address is not None:
                return
            attempt.relay_address = url
        self.events.on_log(f"Tunnel URL found: {url}")
        self.events.on_url_assigned(url)

    async def _release(self, attempt: _Attempt) -> None:
        channel, attempt.channel = attempt.channel, None
        connection, attempt.connection = attempt.connection, None
        if channel is not None:
            try:
                channel.close()
            except Exception:
                logger.debug("Ignoring relay channel close error", exc_info=True)
        if connection is not None:
            try:
                connection.close()
                await asyncio.wait_for(connection.wait_closed(), self.stop_timeout)
            except (Exception, asyncio.CancelledError):
                logger.debug("Ignoring relay connection close error", exc_info=True)

    def _transition(self, attempt: _Attempt, state: TunnelState) -> None:
        with self._lock:
            if self._attempt is not attempt or attempt.cancelled:
                return
            self._state = state
        self.events.on_status_changed(state)

    def _finish(self, attempt: _Attempt, state: TunnelState) -> None:
        with self._lock:
            if self._attempt is not attempt:
                return
            if attempt.cancelled:
                state = TunnelState.CLOSED
            if self._state == state:
                return
            self._state = state
        self.events.on_status_changed(state)
