# Token validity and scope -> collection/permission derivation.
# Created: 2026-10-15

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
import time
from typing import Any

from pelicanclient.address import ObjectAddress
from pelicanclient.errors import TokenExchangeError
from pelicanclient.models import (
    PERMISSION_ORDER,
    Collection,
    Federation,
    Namespace,
    Permission,
    Token,
    TokenResponse,
)

logger = logging.getLogger(__name__)

_STORAGE_SCOPE_RE = re.compile(r"^storage\.(create|modify|read):(.+)$")


def is_valid(token: Token | None, now: float | None = None) -> bool:
    """True if *token* exists and has not expired. No expiry means never expires."""
    if token is None:
        return False
    if token.expiry is None:
        return True
    current = now if now is not None else time.time()
    return token.expiry >= current


def get_usable_token(namespace: Namespace | None) -> Token | None:
    """The namespace token if it is still valid, else None."""
    if namespace is None or not is_valid(namespace.token):
        return None
    return namespace.token


def clear_expired_tokens(federation: Federation, now: float | None = None) -> int:
    """Drop expired tokens from every namespace of *federation*. Returns count cleared."""
    cleared = 0
    for namespace in federation.namespaces.values():
        if namespace.token is not None and not is_valid(namespace.token, now):
            namespace.token = None
            cleared += 1
    if cleared:
        logger.info("Cleared %d expired token(s) in %s", cleared, federation.hostname)
    return cleared


# ---------------------------------------------------------------------------
# Paths relative to a namespace
# ---------------------------------------------------------------------------


def _is_path_prefix(prefix: str, path: str) -> bool:
    """Segment-aware prefix test: ``/a`` covers ``/a`` and ``/a/b`` but not ``/ab``."""
    prefix = prefix.rstrip("/")
    if not prefix:
        return True
    return path == prefix or path.startswith(prefix + "/")


def relative_to_namespace(path: str, namespace_prefix: str) -> str:
    """Strip *namespace_prefix* from *path* if it covers it; always returns an absolute path."""
    prefix = namespace_prefix.rstrip("/")
    if prefix and _is_path_prefix(prefix, path):
        path = path[len(prefix):]
    if not path.startswith("/"):
        path = "/" + path
    return path


# ---------------------------------------------------------------------------
# Collections and permissions
# ---------------------------------------------------------------------------


def derive_collections(namespace: Namespace) -> list[Collection]:
    """Group the token's ``storage.<perm>:<path>`` scopes into collections.

    Grouping is by path and independent of scope order; the result keeps
    first-seen order of the paths.
    """
    token = namespace.token
    if token is None or not token.scope:
        return []

    grouped: dict[str, set[Permission]] = {}
    for scope in token.scope.split():
        match = _STORAGE_SCOPE_RE.match(scope)
        if not match:
            continue
        grouped.setdefault(match.group(2), set()).add(Permission(match.group(1)))

    return [
        Collection(
            path_prefix=path,
            object_path=relative_to_namespace(path, namespace.prefix),
            permissions=frozenset(perms),
        )
        for path, perms in grouped.items()
    ]


def permissions_for(address: ObjectAddress, namespace: Namespace) -> list[Permission]:
    """Permissions granted on *address* by the most specific matching collection."""
    if get_usable_token(namespace) is None:
        return []

    target = relative_to_namespace(address.object_path, namespace.prefix)
    matching = [c for c in derive_collections(namespace) if _is_path_prefix(c.object_path, target)]
    if not matching:
        return []

    longest = max(len(c.object_path.rstrip("/")) for c in matching)
    granted: set[Permission] = set()
    for c in matching:
        if len(c.object_path.rstrip("/")) == longest:
            granted |= c.permissions
    return [p for p in PERMISSION_ORDER if p in granted]


# ---------------------------------------------------------------------------
# JWT claims / token construction
# ---------------------------------------------------------------------------


def decode_jwt_claims(value: str) -> dict[str, Any]:
    """Decode (without verifying) the payload segment of a JWT."""
    parts = value.split(".")
    if len(parts) != 3:
        raise ValueError("Invalid JWT: expected three dot-separated segments")

    payload = parts[1]
    payload += "=" * (-len(payload) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValueError(f"Invalid JWT payload: {e}") from e
    if not isinstance(claims, dict):
        raise ValueError("Invalid JWT payload: not a JSON object")
    return claims


def _as_int(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def token_from_response(
    payload: dict[str, Any],
    now: float | None = None,
    previous: Token | None = None,
) -> Token:
    """Build a Token from a token endpoint JSON response.

    Claims come from the access token JWT; ``expires_in`` and the response
    ``scope`` fill in when the JWT lacks ``exp``/``scope``. *previous* supplies
    the refresh token when a refresh response omits a new one.
    """
    try:
        response = TokenResponse.model_validate(payload)
        claims = decode_jwt_claims(response.access_token)
    except ValueError as e:
        raise TokenExchangeError(f"Unusable token response: {e}") from e

    current = int(now if now is not None else time.time())
    expiry = _as_int(claims.get("exp"))
    if expiry is None and response.expires_in is not None:
        expiry = current + response.expires_in

    refresh = response.refresh_token or (previous.refresh_token if previous else None)
    return Token(
        value=response.access_token,
        issuer=claims.get("iss"),
        subject=claims.get("sub"),
        audience=claims.get("aud"),
        expiry=expiry,
        issued_at=_as_int(claims.get("iat")),
        scope=claims.get("scope") or response.scope,
        refresh_token=refresh,
    )
