"""Redis client factory setup."""

from redis.asyncio import Redis


def setup_cache_client(
    cache_url: str, connect_timeout: float = 10.0, max_connections: int = 50
) -> Redis:
    """Create async Redis client.

    The client decodes responses to ``str``, which CacheRepository relies on.

    Args:
        cache_url: Redis connection URL (redis://host:port/db or rediss:// for TLS)
        connect_timeout: Seconds to wait for a connection
        max_connections: Connection pool size

    Returns:
        Redis client (connections are opened lazily)
    """
    return Redis.from_url(
        cache_url,
        decode_responses=True,
        socket_connect_timeout=connect_timeout,
        max_connections=max_connections,
        health_check_interval=30,
    )
