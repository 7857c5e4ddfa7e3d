"""Dependency container wiring for the application."""

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from quickshare.adapters.file_source import FileSource, LocalFileSource
from quickshare.adapters.relay_client import AsyncsshRelayClient, RelayClient
from quickshare.config import Settings
from quickshare.services.events import EventLog, EventSink, prefixed
from quickshare.services.gallery import GalleryServer, ListenerFactory, UvicornListener
from quickshare.services.sharing import RelayTarget, ShareService
from quickshare.services.thumbnails import ThumbnailGenerator
from quickshare.services.tokens import SessionTokenAuthority
from quickshare.services.tunnel import TunnelSession


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    event_log: EventLog
    file_source: FileSource
    token_authority: SessionTokenAuthority
    thumbnail_generator: ThumbnailGenerator
    gallery_server: GalleryServer
    tunnel_session: TunnelSession
    share_service: ShareService
    close_resources: Callable[[], None]


def build_container(  # noqa: PLR0913
    settings: Settings | None = None,
    *,
    subscribers: Iterable[EventSink] = (),
    file_source: FileSource | None = None,
    relay_client: RelayClient | None = None,
    listener_factory: ListenerFactory | None = None,
) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    event_log = EventLog(
        history_limit=resolved_settings.log_history_limit, subscribers=subscribers
    )
    resolved_file_source = file_source or LocalFileSource()
    token_authority = SessionTokenAuthority(token_bytes=resolved_settings.token_bytes)
    thumbnail_generator = ThumbnailGenerator(
        max_dimension=resolved_settings.thumbnail_max_dimension,
        quality=resolved_settings.thumbnail_quality,
    )
    gallery_server = GalleryServer(
        file_source=resolved_file_source,
        events=prefixed(event_log, "[Server]: "),
        token_authority=token_authority,
        thumbnails=thumbnail_generator,
        bind_host=resolved_settings.bind_host,
        download_chunk_size=resolved_settings.download_chunk_size,
        listener_factory=listener_factory
        or UvicornListener.factory(resolved_settings.shutdown_grace_seconds),
    )
    tunnel_session = TunnelSession(
        client=relay_client or AsyncsshRelayClient(),
        events=event_log,
        ssh_port=resolved_settings.relay_ssh_port,
        bind_host=resolved_settings.relay_bind_host,
        relay_domain=resolved_settings.relay_domain,
        connect_timeout=resolved_settings.connect_timeout,
        stop_timeout=resolved_settings.stop_timeout,
    )
    share_service = ShareService(
        gallery=gallery_server,
        tunnel=tunnel_session,
        events=event_log,
        relay=RelayTarget(
            host=resolved_settings.relay_host,
            user=resolved_settings.relay_user,
            public_port=resolved_settings.relay_public_port,
        ),
        local_port=resolved_settings.local_port,
    )

    def close_resources() -> None:
        share_service.stop_sharing()

    return AppContainer(
        settings=resolved_settings,
        event_log=event_log,
        file_source=resolved_file_source,
        token_authority=token_authority,
        thumbnail_generator=thumbnail_generator,
        gallery_server=gallery_server,
        tunnel_session=tunnel_session,
        share_service=share_service,
        close_resources=close_resources,
    )
