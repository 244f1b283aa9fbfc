from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from mapsns.adapters.token_store.base import AbstractTokenStore
from mapsns.api.dependencies import get_token_store

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check.

    Returns:
        dict: A dictionary with a single "status" key set to "ok".
    """

    return {"status": "ok"}


@router.get("/health/ready")
def readiness_check(
    store: Annotated[AbstractTokenStore, Depends(get_token_store)],
) -> dict:
    """Readiness check: the token store must answer.

    An unreachable store raises StoreUnavailableError, answered with 503 by
    the global exception handler.
    """

    store.ping()
    return {"status": "ready", "token_store": store.backend_name}
