"""Bounded-memory JPEG thumbnails."""

import io
from dataclasses import dataclass
from typing import BinaryIO

from PIL import Image, ImageOps, UnidentifiedImageError

from quickshare.domain.errors import ThumbnailError

_REDUCIBLE_MODES = frozenset({"L", "LA", "RGB", "RGBA", "RGBX", "CMYK", "I", "F"})


def sample_factor(width: int, height: int, max_dimension: int) -> int:
    """Return the power-of-two factor that brings both sides within the bound."""
    if max_dimension <= 0:
        raise ValueError("max_dimension must be positive")
    factor = 1
    while width // factor > max_dimension or height // factor > max_dimension:
        factor *= 2
    return factor


@dataclass
class ThumbnailGenerator:
    """Produce small, low-quality JPEG previews of images.

    The source header is read first to learn the pixel dimensions. JPEG
    sources are then decoded directly at the subsampled size through the
    decoder's draft mode, so the full-resolution buffer is never allocated.
    Other formats are reduced by the same factor right after decoding.
    """

    max_dimension: int = 512
    quality: int = 20

    def generate(self, source: BinaryIO, max_dimension: int | None = None) -> bytes:
        """Return JPEG bytes whose larger side is at most ``max_dimension``."""
        bound = max_dimension or self.max_dimension
        try:
            with Image.open(source) as image:
                width, height = image.size
                factor = sample_factor(width, height, bound)
                target = (max(1, width // factor), max(1, height // factor))
                image.draft("RGB", target)
                thumbnail = _downsample(image, target)
            try:
                thumbnail = _replace(thumbnail, ImageOps.exif_transpose(thumbnail))
                thumbnail.thumbnail((bound, bound))
                if thumbnail.mode != "RGB":
                    thumbnail = _replace(thumbnail, thumbnail.convert("RGB"))
                buffer = io.BytesIO()
                thumbnail.save(buffer, format="JPEG", quality=self.quality)
            finally:
                thumbnail.close()
        except (
            UnidentifiedImageError,
            Image.DecompressionBombError,
            OSError,
            ValueError,
        ) as exc:
            raise ThumbnailError(f"Could not build thumbnail: {exc}") from exc
        return buffer.getvalue()


def _downsample(image: Image.Image, target: tuple[int, int]) -> Image.Image:
    """Decode the image and shrink it by the remaining integer factor."""
    image.load()
    working = image if image.mode in _REDUCIBLE_MODES else image.convert("RGB")
    remaining = max(1, working.width // target[0])
    if remaining > 1:
        reduced = working.reduce(remaining)
    else:
        reduced = working.copy()
    if working is not image:
        working.close()
    return reduced


def _replace(current: Image.Image, new: Image.Image | None) -> Image.Image:
    """Close the current image when an operation returned a different one."""
    if new is None or new is current:
        return current
    current.close()
    return new
