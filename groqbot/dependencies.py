"""FastAPI dependency injection for application components.

Usage:
    from fastapi import Depends
    from groqbot.dependencies import get_http_client, get_token_counter

    @router.post("/endpoint")
    async def endpoint(
        client = Depends(get_http_client),
        count_tokens = Depends(get_token_counter),
    ):
        ...

Tests swap these out with app.dependency_overrides.
"""

from typing import Callable

import httpx
from fastapi import Request


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Get the shared upstream HTTP client from application state.

    Raises:
        RuntimeError: If the client was not created (app startup failed)
    """
    client = getattr(request.app.state, "http_client", None)
    if client is None:
        raise RuntimeError(
            "HTTP client not initialized. Application startup may have failed."
        )
    return client


def get_token_counter(request: Request) -> Callable[[str], int]:
    """Get the token counter from application state.

    Raises:
        RuntimeError: If the counter was not created (app startup failed)
    """
    counter = getattr(request.app.state, "token_counter", None)
    if counter is None:
        raise RuntimeError(
            "Token counter not initialized. Application startup may have failed."
        )
    return counter
