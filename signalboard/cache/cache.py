"""Typed JSON cache over Valkey.

Cache failures never surface to callers: reads degrade to a miss and writes
report False.
"""

from __future__ import annotations

import json
from typing import Any, Optional, Union

from signalboard.core.config import settings
from signalboard.core.logging import get_logger

from .client import get_valkey_client

logger = get_logger("cache")

CACHE_PREFIX = "signalboard"
CACHE_VERSION = "v1"


def cache_key(*parts: Union[str, int, float], prefix: str = "cache") -> str:
    """
    Generate a consistent cache key from parts.

    Usage:
        cache_key("top-margins", "BIST100", prefix="fin") -> "signalboard:v1:fin:top-margins:BIST100"
    """
    sanitized = [str(part).replace(":", "_") for part in parts]
    return f"{CACHE_PREFIX}:{CACHE_VERSION}:{prefix}:{':'.join(sanitized)}"


class Cache:
    """Namespaced JSON cache with a default TTL."""

    def __init__(self, prefix: str = "cache", default_ttl: Optional[int] = None):
        self.prefix = prefix
        self.default_ttl = default_ttl or settings.cache_default_ttl

    async def get(self, key: str) -> Optional[Any]:
        full_key = cache_key(key, prefix=self.prefix)
        try:
            client = await get_valkey_client()
            value = await client.get(full_key)
        except Exception as e:
            logger.warning(f"Cache get failed: {e}", extra={"key": full_key})
            return None
        if value is None:
            logger.debug(f"Cache miss: {full_key}")
            return None
        try:
            return json.loads(value)
        except ValueError:
            logger.warning(f"Discarding undecodable cache entry: {full_key}")
            return None

    async def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        full_key = cache_key(key, prefix=self.prefix)
        try:
            client = await get_valkey_client()
            await client.set(full_key, json.dumps(value, default=str), ex=ttl or self.default_ttl)
        except Exception as e:
            logger.warning(f"Cache set failed: {e}", extra={"key": full_key})
            return False
        logger.debug(f"Cache set: {full_key}, TTL: {ttl or self.default_ttl}s")
        return True
