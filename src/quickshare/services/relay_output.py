"""Parsing of text emitted by the tunnel relay."""

import re

DEFAULT_RELAY_DOMAIN = "lhr.life"

# CSI (ESC [ ... final), OSC (ESC ] ... BEL or ST) and two-character escapes.
_ESCAPE_SEQUENCE = re.compile(
    r"\x1b\[[0-?]*[ -/]*[@-~]"
    r"|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"
    r"|\x1b[@-Z\\-_]"
)
_NON_PRINTABLE = re.compile(r"[\x00-\x08\x0b-\x1f\x7f-\x9f]")


def sanitize_line(line: str) -> str:
    """Strip escape sequences and control characters from a relay line."""
    cleaned = _ESCAPE_SEQUENCE.sub("", line)
    cleaned = _NON_PRINTABLE.sub("", cleaned)
    return cleaned.rstrip()


def relay_url_pattern(domain: str = DEFAULT_RELAY_DOMAIN) -> re.Pattern[str]:
    """Return the pattern matching public URLs assigned under a relay domain."""
    return re.compile(rf"https://[A-Za-z0-9-]+\.{re.escape(domain)}(?![A-Za-z0-9-])")


def extract_relay_url(line: str, domain: str = DEFAULT_RELAY_DOMAIN) -> str | None:
    """Return the first relay URL contained in a line, if any."""
    match = relay_url_pattern(domain).search(line)
    return match.group(0) if match else None
