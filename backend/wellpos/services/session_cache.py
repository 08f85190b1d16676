"""
Redis-backed ephemeral session cache.

Keys: {prefix}:session:{session_id} -> JSON session descriptor, TTL = session lifetime.

A bearer token is only honoured while its key exists here, so logout is
immediate even though the signed token is still cryptographically valid.

Backend failures never propagate: writes/deletes report False and reads
return None, which callers treat as "no session" (fail closed).
"""

import json
import logging
from typing import Any, Optional

import redis
from redis.exceptions import RedisError
from flask import Flask

logger = logging.getLogger(__name__)


class SessionCache:
    def __init__(self, app: Optional[Flask] = None):
        self.client: Optional[redis.Redis] = None
        self._prefix: str = "wellpos"

        if app:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """Build the Redis client from app config. Connection is lazy."""
        self._prefix = app.config.get("SESSION_CACHE_PREFIX", "wellpos")
        redis_url = app.config.get("REDIS_URL", "redis://localhost:6379/0")
        self.client = redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=3,
            socket_timeout=3,
            retry_on_timeout=False,
            health_check_interval=30,
        )
        app.extensions["session_cache"] = self
        logger.info("[SESSION CACHE] configured for %s", redis_url)

    def _key(self, session_id: str) -> str:
        return f"{self._prefix}:session:{session_id}"

    def set(self, session_id: str, value: dict[str, Any], ttl_seconds: int) -> bool:
        if self.client is None:
            logger.warning("[SESSION CACHE] set skipped: cache not initialised")
            return False
        try:
            self.client.setex(self._key(session_id), ttl_seconds, json.dumps(value))
            return True
        except (RedisError, TypeError) as e:
            logger.warning("[SESSION CACHE] set failed for %s: %s", session_id, e)
            return False

    def get(self, session_id: str) -> Optional[dict[str, Any]]:
        if self.client is None:
            return None
        try:
            raw = self.client.get(self._key(session_id))
        except RedisError as e:
            logger.warning("[SESSION CACHE] get failed for %s: %s", session_id, e)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("[SESSION CACHE] corrupt entry for %s", session_id)
            return None

    def delete(self, session_id: str) -> bool:
        if self.client is None:
            return False
        try:
            self.client.delete(self._key(session_id))
            return True
        except RedisError as e:
            logger.warning("[SESSION CACHE] delete failed for %s: %s", session_id, e)
            return False

    def is_available(self) -> bool:
        if self.client is None:
            return False
        try:
            return bool(self.client.ping())
        except RedisError:
            return False
