"""
Redis cache for tier limit rows.
- Never raises exceptions (returns None/False on failure)
- Lazy connection with health checks
- Disabled entirely when REDIS_ENABLED is false
"""

import json
import logging
from typing import Any, Optional

import redis

from consultapi.config import Settings

logger = logging.getLogger(__name__)


class TierLimitCache:
    KEY_PREFIX = "tier_limit:"

    def __init__(self, settings: Settings):
        self._settings = settings
        self._client: Optional[redis.Redis] = None

    def _get_client(self) -> Optional[redis.Redis]:
        """Lazy connection with health check"""
        if not self._settings.REDIS_ENABLED:
            return None
        if self._client is None:
            try:
                redis_kwargs = {
                    "host": self._settings.REDIS_HOST,
                    "port": self._settings.REDIS_PORT,
                    "db": self._settings.REDIS_DB,
                    "decode_responses": True,
                    "socket_connect_timeout": 5,
                    "health_check_interval": 30,
                }

                # Only add password if it's set
                if self._settings.REDIS_PASSWORD:
                    redis_kwargs["password"] = self._settings.REDIS_PASSWORD

                client = redis.Redis(**redis_kwargs)
                client.ping()
                self._client = client
            except redis.RedisError as e:
                logger.warning(f"Redis connection failed: {e}")
                self._client = None
        return self._client

    def get(self, tier: str) -> Optional[Any]:
        """Get cached value, returns None if not found or error"""
        key = f"{self.KEY_PREFIX}{tier}"
        try:
            client = self._get_client()
            if client is None:
                return None
            value = client.get(key)
            return json.loads(value) if value else None
        except (redis.RedisError, ValueError) as e:
            logger.warning(f"Redis GET failed for {key}: {e}")
            return None

    def set(self, tier: str, value: Any) -> bool:
        """Set cache with TTL, returns success status"""
        key = f"{self.KEY_PREFIX}{tier}"
        try:
            client = self._get_client()
            if client is None:
                return False
            client.setex(
                key, self._settings.TIER_LIMIT_CACHE_TTL_SECONDS, json.dumps(value)
            )
            return True
        except (redis.RedisError, TypeError) as e:
            logger.warning(f"Redis SET failed for {key}: {e}")
            return False

    def invalidate(self, tier: str) -> bool:
        key = f"{self.KEY_PREFIX}{tier}"
        try:
            client = self._get_client()
            if client is None:
                return False
            client.delete(key)
            return True
        except redis.RedisError as e:
            logger.warning(f"Redis DELETE failed for {key}: {e}")
            return False

    def close(self):
        """Close connection pool on app shutdown"""
        if self._client:
            self._client.close()
            self._client = None
