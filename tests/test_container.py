"""Tests for container wiring."""

from quickshare.adapters.file_source import LocalFileSource
from quickshare.adapters.relay_client import AsyncsshRelayClient
from quickshare.containers import build_container
from quickshare.domain.models import TunnelState
from tests.conftest import InMemoryFileSource, RecordingEventSink


def test_build_container_creates_services(settings) -> None:
    container = build_container(settings)

    assert isinstance(container.file_source, LocalFileSource)
    assert isinstance(container.tunnel_session.client, AsyncsshRelayClient)
    assert container.share_service.local_port == settings.local_port
    assert container.tunnel_session.state is TunnelState.IDLE
    container.close_resources()


def test_container_applies_settings(container, settings) -> None:
    assert container.token_authority.token_bytes == settings.token_bytes
    assert container.thumbnail_generator.max_dimension == 512
    assert container.thumbnail_generator.quality == 20
    assert container.tunnel_session.connect_timeout == settings.connect_timeout
    assert container.share_service.relay.host == "relay.test"
    assert container.share_service.relay.public_port == 80


def test_gallery_logs_are_prefixed(
    container, file_source: InMemoryFileSource, events: RecordingEventSink
) -> None:
    ref = file_source.add("a.jpg", b"data")

    container.gallery_server.start([ref], 0)

    assert any(line.startswith("[Server]: Session token: ") for line in events.logs)
    assert "[Server]: Shared files: 1" in events.logs
    assert container.event_log.snapshot().logs[-1] == "[Server]: Shared files: 1"


def test_close_resources_stops_everything(container, events) -> None:
    container.close_resources()

    assert container.gallery_server.is_running is False
    assert container.tunnel_session.state is TunnelState.CLOSED
    assert events.logs[-1] == "Service stopped."
