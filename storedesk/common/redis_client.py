import asyncio
import logging
import ssl
from typing import Any, Dict, Optional

from redis.asyncio import Redis

from .config import settings

_logger = logging.getLogger(__name__)

_redis: Optional[Redis] = None
_lock = asyncio.Lock()


def _connection_kwargs() -> Dict[str, Any]:
    conn_kwargs: Dict[str, Any] = {
        "host": settings.REDIS_HOST,
        "port": settings.REDIS_PORT,
        "username": settings.REDIS_USERNAME or None,
        "password": settings.REDIS_PASSWORD or None,
        "db": settings.REDIS_DB,
        "decode_responses": True,
    }
    if settings.REDIS_SSL:
        # relax cert verification for local/dev brokers
        conn_kwargs.update({"ssl": True, "ssl_cert_reqs": ssl.CERT_NONE})
    return conn_kwargs


async def get_redis() -> Redis:
    """Shared connection used by every order channel subscription."""
    global _redis
    if _redis is None:
        async with _lock:
            if _redis is None:
                client = Redis(**_connection_kwargs())
                try:
                    await client.ping()
                except Exception as e:
                    _logger.error("Failed to connect to Redis at %s:%s: %s", settings.REDIS_HOST, settings.REDIS_PORT, e)
                    await client.close()
                    raise
                _logger.info(
                    "Connected to Redis at %s:%s (SSL=%s)",
                    settings.REDIS_HOST,
                    settings.REDIS_PORT,
                    settings.REDIS_SSL,
                )
                _redis = client
    return _redis


async def reset_redis() -> None:
    """Drop the shared connection so the next get_redis() reconnects."""
    global _redis
    client, _redis = _redis, None
    if client is not None:
        try:
            await client.close()
        except Exception as e:
            _logger.debug("Ignoring error while closing stale Redis client: %s", e)


async def reset_if_unhealthy() -> bool:
    """Drop the shared connection only if it no longer answers a ping."""
    client = _redis
    if client is None:
        return False
    try:
        await client.ping()
        return False
    except Exception as e:
        _logger.warning("Shared Redis client unhealthy, resetting: %s", e)
    if _redis is client:
        await reset_redis()
    return True


async def close_redis() -> None:
    await reset_redis()
