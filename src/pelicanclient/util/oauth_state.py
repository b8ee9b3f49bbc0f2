# OAuth ``state`` encoding: "namespace:<prefix>;federation:<hostname>;key:value..."
# Created: 2026-10-15

from __future__ import annotations

from urllib.parse import quote, unquote

_SAFE = "/:@.-_~"


def build_oauth_state(
    namespace_prefix: str,
    federation_hostname: str,
    extra: dict[str, str] | None = None,
) -> str:
    """Encode the namespace, federation and caller pairs into one state string.

    Values are percent-encoded so ``;`` inside a value cannot split the record.
    """
    pairs = [("namespace", namespace_prefix), ("federation", federation_hostname)]
    pairs.extend((extra or {}).items())
    return ";".join(f"{quote(str(k), safe='')}:{quote(str(v), safe=_SAFE)}" for k, v in pairs)


def parse_oauth_state(state: str | None) -> dict[str, str]:
    """Decode a state string built by :func:`build_oauth_state`.

    Keys split on the first ``:`` only, so values such as object URLs survive.
    """
    if state is None or not state.strip():
        return {}

    params: dict[str, str] = {}
    for part in state.split(";"):
        key, _, value = part.partition(":")
        if key:
            params[unquote(key)] = unquote(value)
    return params
