"""Shared test fixtures."""

import asyncio
import io
import time
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import BinaryIO

import pytest
from fastapi import FastAPI
from PIL import Image

from quickshare.adapters.file_source import FileSource
from quickshare.adapters.relay_client import RelayChannel, RelayClient, RelayConnection
from quickshare.config import Settings
from quickshare.containers import AppContainer, build_container
from quickshare.domain.models import FileMetadata, FileRef
from quickshare.services.events import EventSink
from quickshare.services.gallery import Listener


@dataclass
class RecordingEventSink(EventSink):
    """Event sink that records everything it receives."""

    logs: list[str] = field(default_factory=list)
    statuses: list[str] = field(default_factory=list)
    urls: list[str] = field(default_factory=list)
    errors: list[Exception] = field(default_factory=list)

    def on_log(self, message: str) -> None:
        self.logs.append(message)

    def on_status_changed(self, message: str) -> None:
        self.statuses.append(str(message))

    def on_url_assigned(self, url: str) -> None:
        self.urls.append(url)

    def on_error(self, error: Exception) -> None:
        self.errors.append(error)


@dataclass
class InMemoryFileSource(FileSource):
    """File source serving byte strings and counting every access."""

    files: dict[str, tuple[str, bytes, str]] = field(default_factory=dict)
    metadata_calls: int = 0
    open_calls: int = 0
    fail_open: bool = False

    def add(self, name: str, content: bytes, mime_type: str = "image/jpeg") -> FileRef:
        ref = FileRef(uri=f"mem://{len(self.files)}/{name}")
        self.files[ref.uri] = (name, content, mime_type)
        return ref

    @property
    def calls(self) -> int:
        return self.metadata_calls + self.open_calls

    def metadata(self, ref: FileRef) -> FileMetadata:
        self.metadata_calls += 1
        name, content, mime_type = self.files[ref.uri]
        return FileMetadata(name=name, size=len(content), mime_type=mime_type)

    def open_stream(self, ref: FileRef) -> BinaryIO:
        self.open_calls += 1
        if self.fail_open:
            raise OSError("storage unavailable")
        _, content, _ = self.files[ref.uri]
        return io.BytesIO(content)


@dataclass
class FakeRelayChannel(RelayChannel):
    """Channel replaying scripted relay output."""

    lines: list[str]
    read_error: Exception | None = None
    hang_at_end: bool = False
    closed: bool = False

    async def readline(self) -> str:
        if self.lines:
            return self.lines.pop(0)
        if self.read_error is not None:
            raise self.read_error
        if self.hang_at_end:
            await asyncio.Event().wait()
        return ""

    def close(self) -> None:
        self.closed = True


@dataclass
class FakeRelayConnection(RelayConnection):
    """Connection recording forward requests."""

    channel: FakeRelayChannel
    forward_error: Exception | None = None
    forwards: list[tuple[str, int, str, int]] = field(default_factory=list)
    closed: bool = False

    async def forward_remote_port(
        self, bind_host: str, listen_port: int, dest_host: str, dest_port: int
    ) -> None:
        if self.forward_error is not None:
            raise self.forward_error
        self.forwards.append((bind_host, listen_port, dest_host, dest_port))

    async def open_shell(self) -> RelayChannel:
        return self.channel

    def close(self) -> None:
        self.closed = True

    async def wait_closed(self) -> None:
        return None


@dataclass
class FakeRelayClient(RelayClient):
    """Relay client handing out scripted connections."""

    lines: list[str] = field(default_factory=list)
    connect_error: Exception | None = None
    connect_delay: float = 0.0
    forward_error: Exception | None = None
    read_error: Exception | None = None
    hang_at_end: bool = False
    connects: list[tuple[str, int, str]] = field(default_factory=list)
    connections: list[FakeRelayConnection] = field(default_factory=list)

    async def connect(
        self, host: str, port: int, username: str, timeout: float
    ) -> RelayConnection:
        self.connects.append((host, port, username))
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.connect_error is not None:
            raise self.connect_error
        connection = FakeRelayConnection(
            channel=FakeRelayChannel(
                lines=list(self.lines),
                read_error=self.read_error,
                hang_at_end=self.hang_at_end,
            ),
            forward_error=self.forward_error,
        )
        self.connections.append(connection)
        return connection


@dataclass
class FakeListener(Listener):
    """Listener that records lifecycle calls instead of binding sockets."""

    app: FastAPI
    host: str
    requested_port: int
    started: bool = False
    stopped: bool = False

    @property
    def port(self) -> int:
        return self.requested_port or 18080

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True


@dataclass
class FakeListenerFactory:
    """Factory keeping every listener it built."""

    listeners: list[FakeListener] = field(default_factory=list)
    bind_error: OSError | None = None

    def __call__(self, app: FastAPI, host: str, port: int) -> FakeListener:
        if self.bind_error is not None:
            raise self.bind_error
        listener = FakeListener(app=app, host=host, requested_port=port)
        self.listeners.append(listener)
        return listener


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    """Poll a predicate until it holds or the timeout elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def make_image_bytes(
    size: tuple[int, int], image_format: str = "JPEG", color: str = "teal"
) -> bytes:
    """Render a solid image in the given format."""
    buffer = io.BytesIO()
    mode = "RGBA" if image_format == "PNG" else "RGB"
    Image.new(mode, size, color).save(buffer, format=image_format)
    return buffer.getvalue()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        relay_host="relay.test",
        relay_user="nokey",
        local_port=8080,
        connect_timeout=1.0,
        stop_timeout=2.0,
        environment="test",
    )


@pytest.fixture
def events() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def file_source() -> InMemoryFileSource:
    return InMemoryFileSource()


@pytest.fixture
def relay_client() -> FakeRelayClient:
    return FakeRelayClient()


@pytest.fixture
def listener_factory() -> FakeListenerFactory:
    return FakeListenerFactory()


@pytest.fixture
def container(
    settings: Settings,
    events: RecordingEventSink,
    file_source: InMemoryFileSource,
    relay_client: FakeRelayClient,
    listener_factory: FakeListenerFactory,
) -> Iterator[AppContainer]:
    built = build_container(
        settings,
        subscribers=[events],
        file_source=file_source,
        relay_client=relay_client,
        listener_factory=listener_factory,
    )
    yield built
    built.close_resources()
