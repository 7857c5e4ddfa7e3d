"""Domain models for shared files and tunnel state."""

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import overload

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


@dataclass(frozen=True)
class FileRef:
    """Opaque handle to a shareable file, resolved by a FileSource."""

    uri: str


@dataclass(frozen=True)
class FileMetadata:
    """Lazily resolved metadata for a shared file."""

    name: str
    size: int
    mime_type: str


class ShareSet(Sequence[FileRef]):
    """Ordered, immutable collection of files exposed by one gallery session."""

    __slots__ = ("_refs",)

    def __init__(self, refs: Iterable[FileRef] = ()) -> None:
        self._refs = tuple(refs)

    @overload
    def __getitem__(self, index: int) -> FileRef: ...

    @overload
    def __getitem__(self, index: slice) -> Sequence[FileRef]: ...

    def __getitem__(self, index: int | slice) -> FileRef | Sequence[FileRef]:
        return self._refs[index]

    def __len__(self) -> int:
        return len(self._refs)

    def __iter__(self) -> Iterator[FileRef]:
        return iter(self._refs)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ShareSet):
            return NotImplemented
        return self._refs == other._refs

    def __hash__(self) -> int:
        return hash(self._refs)

    def __repr__(self) -> str:
        return f"ShareSet({list(self._refs)!r})"

    def get(self, index: int) -> FileRef | None:
        """Return the ref at a non-negative index, or None when out of range."""
        if 0 <= index < len(self._refs):
            return self._refs[index]
        return None


class PhotoDescriptor(BaseModel):
    """JSON-facing projection of one ShareSet entry."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    size: int
    thumbnail_url: str
    download_url: str


class TunnelState(StrEnum):
    """Lifecycle states of a tunnel session."""

    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FORWARDING_ESTABLISHED = "forwarding_established"
    STREAMING = "streaming"
    CLOSING = "closing"
    CLOSED = "closed"
    FAILED = "failed"


STARTABLE_STATES = frozenset({TunnelState.IDLE, TunnelState.CLOSED, TunnelState.FAILED})
CONNECTED_STATES = frozenset(
    {
        TunnelState.CONNECTED,
        TunnelState.FORWARDING_ESTABLISHED,
        TunnelState.STREAMING,
    }
)
