"""Error taxonomy for the tunnel and the gallery."""


class QuickShareError(Exception):
    """Base class for all QuickShare errors."""


class TunnelConnectionError(QuickShareError, ConnectionError):
    """The outbound relay connection could not be established."""


class ForwardingError(QuickShareError):
    """The relay rejected the reverse port forward request."""


class StreamReadError(QuickShareError):
    """Reading relay output failed mid-stream."""


class ThumbnailError(QuickShareError):
    """An image could not be decoded or compressed into a thumbnail."""


class AuthError(QuickShareError):
    """A gallery request carried a missing or invalid session token."""


class NotFoundError(QuickShareError):
    """A gallery request referenced an unknown file index."""


class GalleryStartError(QuickShareError):
    """The gallery listener could not be bound."""
