from typing import Mapping, Optional

UNKNOWN_CLIENT = "unknown"


def derive_client_key(headers: Mapping[str, str], client_host: Optional[str] = None) -> str:
    """Get the rate limit key for a request.

    Uses the first X-Forwarded-For hop, then X-Real-IP, then the socket peer.
    Never fails: callers without any address share the ``"unknown"`` bucket.

    Args:
        headers: Request headers (case-insensitive mapping)
        client_host: Peer address reported by the server, if any

    Returns:
        Rate limit key string
    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    if client_host:
        return client_host
    return UNKNOWN_CLIENT
