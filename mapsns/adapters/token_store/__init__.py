"""Token store adapters - refresh token persistence and access token revocation."""

from mapsns.adapters.token_store.base import AbstractTokenStore
from mapsns.adapters.token_store.factory import create_token_store
from mapsns.adapters.token_store.inert import InertTokenStore
from mapsns.adapters.token_store.redis_store import RedisTokenStore

__all__ = [
    "AbstractTokenStore",
    "InertTokenStore",
    "RedisTokenStore",
    "create_token_store",
]
