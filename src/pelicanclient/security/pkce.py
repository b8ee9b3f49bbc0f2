"""PKCE verifier/challenge generation (RFC 7636, S256 only)."""

from __future__ import annotations

import base64
import hashlib
import secrets


def generate_code_verifier(nbytes: int = 48) -> str:
    """A high-entropy verifier of URL-safe characters (43-128 chars)."""
    return secrets.token_urlsafe(nbytes)


def generate_code_challenge(code_verifier: str) -> str:
    """S256 challenge: BASE64URL(SHA256(code_verifier)) without padding."""
    return (
        base64.urlsafe_b64encode(hashlib.sha256(code_verifier.encode()).digest())
        .rstrip(b"=")
        .decode()
    )
