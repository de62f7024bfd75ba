"""Allowlist of upstream paths the proxy may forward.

This is the only thing stopping the proxy from being used as an open relay
to arbitrary eBird endpoints, so matching is a plain prefix test on the
decoded path.
"""

import re
from typing import Iterable
from urllib.parse import unquote_to_bytes

from ebird_proxy.app.exceptions import InvalidEncodingError, PathNotAllowedError

# A '%' must introduce exactly two hex digits
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def percent_decode(raw: str) -> str:
    """Decode percent-escapes, rejecting malformed input.

    Unlike ``urllib.parse.unquote`` this fails on a stray ``%`` or on escapes
    that do not form valid UTF-8, instead of passing them through.

    Raises:
        InvalidEncodingError: If ``raw`` is not a valid percent-encoding.
    """
    if _BAD_ESCAPE.search(raw):
        raise InvalidEncodingError(raw)
    try:
        return unquote_to_bytes(raw).decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidEncodingError(raw) from e


def has_dot_segments(path: str) -> bool:
    """True if the path part contains ``.`` or ``..`` segments.

    URL normalization would resolve them after the prefix check, letting
    ``/data/obs/../../other`` escape the allowlisted prefix.
    """
    path_part = path.split("?", 1)[0].split("#", 1)[0]
    return any(segment in (".", "..") for segment in path_part.split("/"))


class AllowlistValidator:
    """Validates endpoints against a fixed list of path prefixes."""

    def __init__(self, allowed_prefixes: Iterable[str]):
        self.allowed_prefixes = tuple(allowed_prefixes)

    def is_allowed(self, path: str) -> bool:
        if has_dot_segments(path):
            return False
        return any(path.startswith(prefix) for prefix in self.allowed_prefixes)

    def validate(self, raw_endpoint: str) -> str:
        """Decode and check an endpoint.

        Args:
            raw_endpoint: Endpoint as received in the query string.

        Returns:
            The normalized (decoded) path.

        Raises:
            InvalidEncodingError: If the endpoint cannot be decoded.
            PathNotAllowedError: If no allowlisted prefix matches.
        """
        path = percent_decode(raw_endpoint)
        if not self.is_allowed(path):
            raise PathNotAllowedError(path, list(self.allowed_prefixes))
        return path
