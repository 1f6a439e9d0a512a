"""Cache repository for thumbforge.

Wraps a ``redis.asyncio`` client behind Result-returning methods. The cache is
advisory: a miss is Ok(None), and a payload that is not valid JSON is returned as
the raw string instead of failing the call. Client failures become CacheError.
"""

import json
from typing import Any

import structlog
from redis.asyncio import Redis

from thumbforge.core.errors import BaseError, CacheError, exception_detail
from thumbforge.core.result import Ok, Result, from_awaitable, from_try

logger = structlog.get_logger(__name__)


def _on_error(message: str, **context):
    def mapper(exc: Exception) -> BaseError:
        logger.error(
            "cache.failed", reason=message, error=str(exc), error_type=type(exc).__name__, **context
        )
        return CacheError(message, exception_detail(exc, **context))

    return mapper


class CacheRepository:
    """Key-value cache over Redis string payloads.

    Non-string values are stored as JSON (datetimes and other non-native types via
    their ``str()``/ISO form). The client must be created with
    ``decode_responses=True`` so reads return ``str``.
    """

    name = "CacheRepository"

    def __init__(self, client: Redis):
        """Initialize repository with an already connected Redis client.

        Args:
            client: redis.asyncio client (decode_responses=True)
        """
        self.client = client

    async def get(self, key: str) -> Result[Any | None, BaseError]:
        """Read and JSON-decode a cached value.

        Returns:
            Ok(None) on miss, Ok(decoded) for JSON payloads, Ok(raw) otherwise
        """
        raw_result = await from_awaitable(
            lambda: self.client.get(key), _on_error("Failed to get value", key=key)
        )
        if raw_result.is_err():
            return raw_result

        raw = raw_result.value
        if raw is None or raw == "":
            logger.debug("cache.miss", key=key)
            return Ok(None)

        parsed = from_try(
            lambda: json.loads(raw),
            lambda exc: CacheError("Failed to parse cached value", {"key": key}),
        )
        if parsed.is_err():
            logger.debug("cache.raw_value", key=key)
            return Ok(raw)

        logger.debug("cache.hit", key=key)
        return parsed

    async def set(
        self, key: str, value: Any, ttl_seconds: int | None = None
    ) -> Result[None, BaseError]:
        """Store a value, JSON-encoding anything that is not a string.

        Args:
            key: Cache key
            value: Value to store
            ttl_seconds: Expiry in seconds; None means no expiry
        """

        async def _set() -> None:
            payload = value if isinstance(value, str) else json.dumps(value, default=str)
            await self.client.set(key, payload, ex=ttl_seconds)
            logger.debug("cache.set", key=key, ttl=ttl_seconds)

        return await from_awaitable(_set, _on_error("Failed to set value", key=key))

    async def delete(self, key: str) -> Result[bool, BaseError]:
        """Delete a key. Returns whether it existed."""

        async def _delete() -> bool:
            removed = await self.client.delete(key)
            logger.debug("cache.deleted", key=key, deleted=removed > 0)
            return removed > 0

        return await from_awaitable(_delete, _on_error("Failed to delete value", key=key))

    async def exists(self, key: str) -> Result[bool, BaseError]:
        async def _exists() -> bool:
            return await self.client.exists(key) > 0

        return await from_awaitable(_exists, _on_error("Failed to check key existence", key=key))

    async def expire(self, key: str, ttl_seconds: int) -> Result[bool, BaseError]:
        """Set a TTL on an existing key. Returns False if the key does not exist."""

        async def _expire() -> bool:
            applied = bool(await self.client.expire(key, ttl_seconds))
            logger.debug("cache.expire", key=key, ttl=ttl_seconds, success=applied)
            return applied

        return await from_awaitable(
            _expire, _on_error("Failed to set expiration", key=key, ttl=ttl_seconds)
        )

    async def ping(self) -> Result[str, BaseError]:
        """Check connectivity. Returns "PONG"."""

        async def _ping() -> str:
            response = await self.client.ping()
            # redis-py parses PONG into True
            return "PONG" if response is True else str(response)

        return await from_awaitable(_ping, _on_error("Failed to ping cache"))
