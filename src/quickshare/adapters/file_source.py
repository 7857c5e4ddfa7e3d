"""File sources backing the gallery."""

import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Protocol

from quickshare.domain.models import FileMetadata, FileRef

DEFAULT_MIME_TYPE = "application/octet-stream"


class FileSource(Protocol):
    """Interface for resolving and reading shared files."""

    def metadata(self, ref: FileRef) -> FileMetadata:
        """Return display name, size and MIME type for a file."""

    def open_stream(self, ref: FileRef) -> BinaryIO:
        """Open the file for binary reading."""


@dataclass
class LocalFileSource(FileSource):
    """File source reading from the local filesystem."""

    def metadata(self, ref: FileRef) -> FileMetadata:
        """Resolve metadata from the path and its stat result."""
        path = Path(ref.uri)
        mime_type, _ = mimetypes.guess_type(path.name)
        return FileMetadata(
            name=path.name,
            size=path.stat().st_size,
            mime_type=mime_type or DEFAULT_MIME_TYPE,
        )

    def open_stream(self, ref: FileRef) -> BinaryIO:
        """Open the referenced path."""
        return Path(ref.uri).open("rb")

    @staticmethod
    def ref_for(path: str | Path) -> FileRef:
        """Build a ref for a filesystem path."""
        return FileRef(uri=str(Path(path).expanduser().resolve()))
