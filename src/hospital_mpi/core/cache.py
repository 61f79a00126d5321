"""
Redis read cache for patient records

Values are orjson-encoded. The cache is an optimization only: every
Redis fault is logged and behaves like a miss or a no-op write.
"""

import logging
from typing import Optional, Dict, Any

import orjson
import redis.asyncio as redis
from redis.exceptions import RedisError, ConnectionError

from .config import get_redis_config, RedisConfig

logger = logging.getLogger(__name__)

PATIENT_KEY_PREFIX = "patient:"


def patient_cache_key(internal_id: str) -> str:
    return f"{PATIENT_KEY_PREFIX}{internal_id}"


class CacheManager:
    """Pooled redis.asyncio client shared by the Mongo-backed stores"""

    def __init__(self, config: Optional[RedisConfig] = None, client: Optional[redis.Redis] = None):
        self.config = config or get_redis_config()
        self._client = client
        self._pool: Optional[redis.ConnectionPool] = None

    @property
    def ready(self) -> bool:
        return self._client is not None

    async def initialize(self) -> None:
        """Open the connection pool and check the server answers"""
        if self.ready:
            return

        cfg = self.config
        logger.info(f"Connecting patient cache to redis://{cfg.host}:{cfg.port}/{cfg.db}")

        self._pool = redis.ConnectionPool(
            host=cfg.host,
            port=cfg.port,
            db=cfg.db,
            password=cfg.password or None,
            max_connections=cfg.max_connections,
            socket_timeout=cfg.socket_timeout,
            socket_connect_timeout=cfg.socket_connect_timeout,
            decode_responses=cfg.decode_responses,
            retry_on_timeout=True,
            retry_on_error=[ConnectionError],
        )
        client = redis.Redis(connection_pool=self._pool)

        try:
            await client.ping()
        except RedisError as e:
            logger.error(f"Patient cache unreachable: {e}")
            await self._pool.disconnect()
            self._pool = None
            raise

        self._client = client

    async def cleanup(self) -> None:
        if self._pool is not None:
            await self._pool.disconnect()
            self._pool = None
        self._client = None
        logger.info("Patient cache closed")

    async def health_check(self) -> Dict[str, Any]:
        if not self.ready:
            return {"status": "error", "message": "Redis not initialized"}

        try:
            await self._client.ping()
            info = await self._client.info("memory")
        except RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return {"status": "unhealthy", "error": str(e)}

        return {
            "status": "healthy",
            "used_memory_human": info.get("used_memory_human", "0B"),
        }

    async def get(self, key: str) -> Optional[Any]:
        """Decoded value, or None on a miss or any fault"""
        if not self.ready:
            return None
        try:
            raw = await self._client.get(key)
            return orjson.loads(raw) if raw else None
        except (RedisError, orjson.JSONDecodeError) as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        if not self.ready:
            return False
        try:
            await self._client.setex(
                key,
                ttl_seconds or self.config.default_ttl_seconds,
                orjson.dumps(value)
            )
        except (RedisError, TypeError) as e:
            logger.warning(f"Cache write failed for {key}: {e}")
            return False
        return True

    async def delete(self, key: str) -> bool:
        if not self.ready:
            return False
        try:
            return await self._client.delete(key) > 0
        except RedisError as e:
            logger.warning(f"Cache delete failed for {key}: {e}")
            return False
