"""Redis connection for the shared token/chat-id cache."""
import redis
from redis.cluster import RedisCluster
from redis.exceptions import RedisClusterException, RedisError

from commonlog.config import RedisConfig

CONNECT_TIMEOUT = 2  # seconds

# Anything raised while connecting or talking to Redis
REDIS_ERRORS = (RedisError, RedisClusterException)


def open_redis(cfg: RedisConfig) -> redis.Redis | RedisCluster:
    """Connect and ping. Raises one of REDIS_ERRORS if the server is unreachable."""
    if cfg.cluster_mode:
        client = RedisCluster(
            host=cfg.host,
            port=cfg.port,
            password=cfg.password or None,
            ssl=cfg.ssl,
            decode_responses=True,
            socket_connect_timeout=CONNECT_TIMEOUT,
        )
    else:
        client = redis.Redis(
            host=cfg.host,
            port=cfg.port,
            db=cfg.db,
            password=cfg.password or None,
            ssl=cfg.ssl,
            decode_responses=True,
            socket_connect_timeout=CONNECT_TIMEOUT,
        )
    try:
        client.ping()
    except REDIS_ERRORS:
        client.close()
        raise
    return client
