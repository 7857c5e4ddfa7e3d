"""FastAPI application for the token-gated gallery."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, BinaryIO
from urllib.parse import quote

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, Response, StreamingResponse

from quickshare.adapters.file_source import DEFAULT_MIME_TYPE
from quickshare.api.viewer import render_viewer
from quickshare.domain.errors import AuthError, NotFoundError
from quickshare.domain.gallery import GallerySession
from quickshare.domain.models import FileMetadata, FileRef, PhotoDescriptor

if TYPE_CHECKING:
    from quickshare.adapters.file_source import FileSource
    from quickshare.services.events import EventSink
    from quickshare.services.gallery import GallerySessionHolder
    from quickshare.services.thumbnails import ThumbnailGenerator
    from quickshare.services.tokens import SessionTokenAuthority

logger = logging.getLogger(__name__)

UNAUTHORIZED_DETAIL = "Invalid or missing session token"
NOT_FOUND_DETAIL = "Image not found"


@dataclass
class GalleryContext:
    """Dependencies shared by all gallery request handlers."""

    sessions: GallerySessionHolder
    file_source: FileSource
    thumbnails: ThumbnailGenerator
    token_authority: SessionTokenAuthority
    events: EventSink
    download_chunk_size: int = 64 * 1024


def _get_context(request: Request) -> GalleryContext:
    return request.app.state.gallery


async def require_session(
    token: str | None = Query(default=None),
    context: GalleryContext = Depends(_get_context),
) -> GallerySession:
    """Resolve the active session, rejecting requests with a bad token."""
    session = context.sessions.current()
    current = session.token if session else None
    if session is None or not context.token_authority.validate(token, current):
        raise AuthError(UNAUTHORIZED_DETAIL)
    return session


def create_app(context: GalleryContext) -> FastAPI:
    """Create the gallery app bound to a context."""
    app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)
    app.state.gallery = context
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
    )

    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED, content={"detail": str(exc)}
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)}
        )

    @app.get("/", response_class=HTMLResponse)
    async def viewer(
        session: GallerySession = Depends(require_session),
    ) -> HTMLResponse:
        """Serve the gallery viewer page."""
        return HTMLResponse(render_viewer(session.token))

    @app.get("/photos")
    def list_photos(
        session: GallerySession = Depends(require_session),
        context: GalleryContext = Depends(_get_context),
    ) -> list[PhotoDescriptor]:
        """List the shared files with token-qualified URLs."""
        try:
            return [
                _describe(index, context.file_source.metadata(ref), session.token)
                for index, ref in enumerate(session.share_set)
            ]
        except Exception as exc:
            _report_failure(context, "Failed to list shared files", exc)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error listing photos",
            ) from exc

    @app.get("/thumbnail/{photo_id}")
    def thumbnail(
        photo_id: str,
        session: GallerySession = Depends(require_session),
        context: GalleryContext = Depends(_get_context),
    ) -> Response:
        """Return a JPEG preview of one shared image."""
        _, ref = _resolve(session, photo_id)
        try:
            with context.file_source.open_stream(ref) as stream:
                data = context.thumbnails.generate(stream)
        except Exception as exc:
            _report_failure(context, f"Failed to build thumbnail {photo_id}", exc)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error generating thumbnail",
            ) from exc
        return Response(content=data, media_type="image/jpeg")

    @app.get("/download/{photo_id}")
    def download(
        photo_id: str,
        session: GallerySession = Depends(require_session),
        context: GalleryContext = Depends(_get_context),
    ) -> StreamingResponse:
        """Stream the original bytes of one shared file."""
        index, ref = _resolve(session, photo_id)
        try:
            metadata = context.file_source.metadata(ref)
            stream = context.file_source.open_stream(ref)
        except Exception as exc:
            _report_failure(context, f"Failed to open file {photo_id}", exc)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error reading file",
            ) from exc
        context.events.on_log(f"Download started: {_display_name(index, metadata)}")
        return StreamingResponse(
            _iter_chunks(stream, context),
            media_type=metadata.mime_type or DEFAULT_MIME_TYPE,
            headers={
                "Content-Disposition": content_disposition(
                    _display_name(index, metadata)
                )
            },
        )

    return app


def content_disposition(filename: str) -> str:
    """Build an attachment header, adding an RFC 5987 name for non-ASCII."""
    cleaned = "".join(ch for ch in filename if ch not in '"\\\r\n')
    fallback = cleaned.encode("ascii", "replace").decode("ascii")
    header = f'attachment; filename="{fallback}"'
    if fallback != cleaned:
        header += f"; filename*=UTF-8''{quote(cleaned)}"
    return header


def _resolve(session: GallerySession, photo_id: str) -> tuple[int, FileRef]:
    index = int(photo_id) if photo_id.isascii() and photo_id.isdigit() else -1
    ref = session.share_set.get(index)
    if ref is None:
        raise NotFoundError(NOT_FOUND_DETAIL)
    return index, ref


def _display_name(index: int, metadata: FileMetadata) -> str:
    return metadata.name or f"photo_{index}.jpg"


def _describe(index: int, metadata: FileMetadata, token: str) -> PhotoDescriptor:
    return PhotoDescriptor(
        id=str(index),
        name=_display_name(index, metadata),
        size=metadata.size,
        thumbnail_url=f"/thumbnail/{index}?token={token}",
        download_url=f"/download/{index}?token={token}",
    )


def _iter_chunks(stream: BinaryIO, context: GalleryContext) -> Iterator[bytes]:
    """Yield the stream in bounded chunks, closing it when done."""
    try:
        while chunk := stream.read(context.download_chunk_size):
            yield chunk
    except Exception as exc:
        _report_failure(context, "Download interrupted", exc)
        raise
    finally:
        stream.close()


def _report_failure(context: GalleryContext, message: str, exc: Exception) -> None:
    logger.exception(message)
    context.events.on_log(f"{message}: {exc}")
    context.events.on_error(exc)
