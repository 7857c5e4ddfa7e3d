"""Domain models for gallery sessions."""

from dataclasses import dataclass

from quickshare.domain.models import ShareSet


@dataclass(frozen=True)
class GallerySession:
    """Token and file snapshot published by one running gallery."""

    token: str
    share_set: ShareSet
