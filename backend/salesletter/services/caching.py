from __future__ import annotations

import asyncio
import hashlib
import logging
from typing import Type, TypeVar

import redis
from pydantic import BaseModel, ValidationError

from ..core.config import get_settings

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

KEY_NAMESPACE = "salesletter"


def cache_key(prefix: str, raw: str) -> str:
    """Namespaced key; the raw part is hashed so long URLs stay bounded."""
    digest = hashlib.sha256(raw.encode("utf-8")).hexdigest()[:32]
    return f"{KEY_NAMESPACE}:{prefix}:{digest}"


def _get_sync_redis() -> redis.Redis | None:
    """Fresh client per call, or None when REDIS_URL is unset (cache disabled)."""
    settings = get_settings()
    if not settings.REDIS_URL:
        return None
    return redis.from_url(
        str(settings.REDIS_URL),
        decode_responses=True,
        socket_timeout=5,
        socket_connect_timeout=5,
    )


def _read(key: str) -> str | None:
    client = _get_sync_redis()
    if client is None:
        return None
    try:
        return client.get(key)
    except redis.RedisError as e:
        logger.warning("Redis cache unavailable on read: %s", e)
        return None
    finally:
        client.close()


def _write(key: str, payload: str, ttl: int | None) -> None:
    client = _get_sync_redis()
    if client is None:
        return
    try:
        client.set(key, payload, ex=ttl)
    except redis.RedisError as e:
        logger.warning("Redis cache unavailable on write: %s", e)
    finally:
        client.close()


async def load_cached(key: str, model: Type[M]) -> M | None:
    """
    Cached model for `key`, or None on miss.

    A payload that no longer matches the model is treated as a miss.
    """
    raw = await asyncio.to_thread(_read, key)
    if raw is None:
        return None
    try:
        return model.model_validate_json(raw)
    except ValidationError:
        logger.warning("Discarding stale cache entry %s", key)
        return None


async def store_cached(key: str, value: BaseModel, ttl: int | None = None) -> None:
    await asyncio.to_thread(_write, key, value.model_dump_json(), ttl)
