from __future__ import annotations

"""Client identity resolution for rate limiting."""

from fastapi import Request

UNKNOWN_CLIENT = "unknown"


def resolve_client_identity(request: Request) -> str:
    """Return the first forwarded address, or a shared sentinel when absent."""
    forwarded = request.headers.get("x-forwarded-for")
    if not forwarded:
        return UNKNOWN_CLIENT
    first = forwarded.split(",", 1)[0].strip()
    return first or UNKNOWN_CLIENT
