"""Authentication — optional API key header."""

from __future__ import annotations

import hmac

from fastapi import Header, HTTPException, Request


def validate_api_key(provided: str, expected: str) -> bool:
    """Constant-time API key comparison."""
    return hmac.compare_digest(provided.encode(), expected.encode())


async def require_api_key(request: Request, x_api_key: str = Header(default="")) -> None:
    config = request.app.state.config
    if not config.http_api_require_auth:
        return
    if not config.wireoverlay_api_key or not validate_api_key(x_api_key, config.wireoverlay_api_key):
        raise HTTPException(401, "Invalid or missing API key")
