"""FastAPI dependencies for the forwarding endpoints."""

from typing import Optional

from fastapi import Header

from konsole.errors import MissingAPIKeyError


async def require_api_key(
    x_api_key: Optional[str] = Header(default=None, alias="X-API-KEY"),
) -> str:
    """Extract the caller's backend API key.

    Resolved before the route body runs, so a request without a key never
    reaches the backend.

    Raises:
        MissingAPIKeyError: Header absent or blank (401)
    """
    if not x_api_key or not x_api_key.strip():
        raise MissingAPIKeyError()
    return x_api_key
