"""FastAPI dependencies exposing the token store to route handlers.

Handlers that touch the store should be declared with ``def`` (not
``async def``) so the blocking Redis calls run in the threadpool.

Usage:
    @router.post("/api/auth/logout")
    def logout(service: Annotated[TokenLifecycleService, Depends(get_token_service)]):
        ...
"""

from __future__ import annotations

from fastapi import Request

from mapsns.adapters.token_store.base import AbstractTokenStore
from mapsns.services.token_service import TokenLifecycleService


def get_token_store(request: Request) -> AbstractTokenStore:
    return request.app.state.token_store


def get_token_service(request: Request) -> TokenLifecycleService:
    return TokenLifecycleService(get_token_store(request))
