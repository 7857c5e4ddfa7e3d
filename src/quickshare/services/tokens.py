"""Ephemeral session tokens for the gallery."""

import secrets
from dataclasses import dataclass


@dataclass
class SessionTokenAuthority:
    """Generate and check the shared secret of one gallery session."""

    token_bytes: int = 12

    def generate(self) -> str:
        """Return a new URL-safe token."""
        return secrets.token_urlsafe(self.token_bytes)

    def validate(self, candidate: str | None, current: str | None) -> bool:
        """Return true when the candidate matches the active token."""
        if not candidate or current is None:
            return False
        return secrets.compare_digest(candidate.encode(), current.encode())
