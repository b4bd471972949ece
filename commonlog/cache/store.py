"""
Token / chat-id cache layer.

Keys:
    {namespace}_token:{app_id}:{app_secret}        tenant token, expire - 600s (min 60s)
    {namespace}_chat_id:{environment}:{channel}    chat id, no expiry

Strategy:
1. Redis (from Config.redis), one connection per operation
2. Redis missing / unreachable / erroring -> in-process cache
Cache problems are never raised to the caller.
"""
from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager

import structlog

from commonlog.cache.memory import Cache, get_global_cache
from commonlog.cache.redis import REDIS_ERRORS, open_redis
from commonlog.config import Config, RedisConfig, settings
from commonlog.log import debug_log

logger = structlog.get_logger()


def token_ttl(expire: int) -> int:
    """Seconds to keep a token the server says lives ``expire`` seconds."""
    ttl = expire - settings.TOKEN_EXPIRY_MARGIN
    return ttl if ttl > 0 else settings.TOKEN_MIN_TTL


class TokenStore:
    def __init__(
        self,
        namespace: str | None = None,
        cache: Cache | None = None,
        connect: Callable[[RedisConfig], object] = open_redis,
    ):
        self.namespace = namespace or f"{settings.CACHE_NAMESPACE}_lark"
        self._cache = cache
        self._connect = connect

    @property
    def fallback(self) -> Cache:
        # Looked up per call so set_global_cache() takes effect
        return self._cache if self._cache is not None else get_global_cache()

    def token_key(self, app_id: str, app_secret: str) -> str:
        return f"{self.namespace}_token:{app_id}:{app_secret}"

    def chat_id_key(self, environment: str, channel_name: str) -> str:
        return f"{self.namespace}_chat_id:{environment}:{channel_name}"

    @contextmanager
    def _redis(self, cfg: Config) -> Iterator[object | None]:
        if cfg.redis is None:
            debug_log(cfg, "cache.redis_not_configured", fallback="memory")
            yield None
            return
        try:
            client = self._connect(cfg.redis)
        except REDIS_ERRORS as e:
            debug_log(cfg, "cache.redis_unavailable", host=cfg.redis.host, error=str(e), fallback="memory")
            yield None
            return
        try:
            yield client
        finally:
            client.close()

    def get(self, cfg: Config, key: str) -> str | None:
        with self._redis(cfg) as client:
            if client is not None:
                try:
                    value = client.get(key)
                    debug_log(cfg, "cache.redis_get", hit=value is not None)
                    return value
                except REDIS_ERRORS as e:
                    logger.warning("cache.redis_get_failed", error=str(e))
        return self.fallback.get(key)

    def set(self, cfg: Config, key: str, value: str, ttl: int | None) -> None:
        with self._redis(cfg) as client:
            if client is not None:
                try:
                    client.set(key, value, ex=ttl)
                    debug_log(cfg, "cache.redis_set", ttl=ttl)
                    return
                except REDIS_ERRORS as e:
                    logger.warning("cache.redis_set_failed", error=str(e))
        self.fallback.set(key, value, ttl)
        debug_log(cfg, "cache.memory_set", ttl=ttl)

    # Convenience wrappers used by the Lark provider

    def get_token(self, cfg: Config, app_id: str, app_secret: str) -> str | None:
        return self.get(cfg, self.token_key(app_id, app_secret))

    def put_token(self, cfg: Config, app_id: str, app_secret: str, token: str, expire: int) -> int:
        ttl = token_ttl(expire)
        self.set(cfg, self.token_key(app_id, app_secret), token, ttl)
        return ttl

    def get_chat_id(self, cfg: Config, channel_name: str) -> str | None:
        return self.get(cfg, self.chat_id_key(cfg.environment, channel_name))

    def put_chat_id(self, cfg: Config, channel_name: str, chat_id: str) -> None:
        self.set(cfg, self.chat_id_key(cfg.environment, channel_name), chat_id, None)
