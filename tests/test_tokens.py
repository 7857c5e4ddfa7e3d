"""Tests for session tokens."""

from quickshare.services.tokens import SessionTokenAuthority


def test_generate_returns_distinct_url_safe_tokens() -> None:
    authority = SessionTokenAuthority()

    tokens = {authority.generate() for _ in range(50)}

    assert len(tokens) == 50
    for token in tokens:
        assert len(token) == 16
        assert all(ch.isalnum() or ch in "-_" for ch in token)


def test_validate_accepts_exact_match_only() -> None:
    authority = SessionTokenAuthority()
    token = authority.generate()

    assert authority.validate(token, token) is True
    assert authority.validate(token.upper() + "x", token) is False
    assert authority.validate(token[:-1], token) is False


def test_validate_rejects_missing_values() -> None:
    authority = SessionTokenAuthority()

    assert authority.validate(None, "abc") is False
    assert authority.validate("", "abc") is False
    assert authority.validate("abc", None) is False


def test_token_length_follows_byte_count() -> None:
    assert len(SessionTokenAuthority(token_bytes=24).generate()) == 32
