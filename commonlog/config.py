from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic_settings import BaseSettings

from commonlog.types import ChannelResolver


class Settings(BaseSettings):
    model_config = {
        "env_prefix": "COMMONLOG_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    # HTTP
    HTTP_TIMEOUT: float = 30.0
    SLACK_API_URL: str = "https://slack.com/api/chat.postMessage"
    LARK_BASE_URL: str = "https://open.larksuite.com/open-apis"
    LARK_POST_LOCALE: str = "zh_cn"
    LARK_CHAT_PAGE_SIZE: int = 10

    # Cache
    CACHE_NAMESPACE: str = "commonlog"
    CACHE_SWEEP_INTERVAL: int = 300
    TOKEN_EXPIRY_MARGIN: int = 600
    TOKEN_MIN_TTL: int = 60

    # Logging
    LOG_FORMAT: str = "console"  # console | json

    # Defaults for Config.from_settings()
    PROVIDER: str = "slack"
    SEND_METHOD: str = "webclient"
    TOKEN: str = ""
    SLACK_TOKEN: str = ""
    LARK_APP_ID: str = ""
    LARK_APP_SECRET: str = ""
    CHANNEL: str = ""
    SERVICE_NAME: str = ""
    ENVIRONMENT: str = ""
    DEBUG: bool = False
    REDIS_HOST: str = ""
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: str = ""
    REDIS_SSL: bool = False
    REDIS_CLUSTER_MODE: bool = False
    REDIS_DB: int = 0


settings = Settings()


class LarkTokenConfig(BaseModel):
    """Lark app credentials exchanged for a tenant_access_token."""
    model_config = ConfigDict(frozen=True)

    app_id: str = ""
    app_secret: str = ""

    @property
    def complete(self) -> bool:
        return bool(self.app_id and self.app_secret)


class RedisConfig(BaseModel):
    """Connection parameters for the external token/chat-id cache."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    host: str
    port: int
    password: str = ""
    ssl: bool = False
    cluster_mode: bool = False
    db: int = 0


# flat provider_config keys -> RedisConfig fields
_LEGACY_REDIS_KEYS = {
    "redis_host": "host",
    "redis_port": "port",
    "redis_password": "password",
    "redis_ssl": "ssl",
    "redis_cluster_mode": "cluster_mode",
    "redis_db": "db",
}


class Config(BaseModel):
    """Per-logger configuration. Immutable; use model_copy(update=...) to override."""
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    provider: str = "slack"
    send_method: str = "webclient"
    token: str = ""
    slack_token: str = ""
    lark_token: LarkTokenConfig | None = None
    channel: str = ""
    channel_resolver: ChannelResolver | None = None
    service_name: str = ""
    environment: str = ""
    debug: bool = False
    redis: RedisConfig | None = None

    @model_validator(mode="before")
    @classmethod
    def _fold_provider_config(cls, data: Any) -> Any:
        """Accept the flat ``provider_config`` mapping used by older callers."""
        if not isinstance(data, dict) or "provider_config" not in data:
            return data
        data = dict(data)
        legacy = data.pop("provider_config") or {}
        redis_fields = {
            field: legacy[key] for key, field in _LEGACY_REDIS_KEYS.items() if key in legacy
        }
        # Without both host and port there is nothing to connect to: stay on the in-process cache
        if redis_fields.get("host") and redis_fields.get("port") and data.get("redis") is None:
            data["redis"] = redis_fields
        for key in ("provider", "token", "slack_token", "lark_token"):
            if key in legacy and not data.get(key):
                data[key] = legacy[key]
        return data

    @classmethod
    def from_settings(cls, source: Settings | None = None, **overrides) -> "Config":
        """Build a Config from COMMONLOG_* environment settings."""
        s = source or settings
        values: dict[str, Any] = {
            "provider": s.PROVIDER,
            "send_method": s.SEND_METHOD,
            "token": s.TOKEN,
            "slack_token": s.SLACK_TOKEN,
            "channel": s.CHANNEL,
            "service_name": s.SERVICE_NAME,
            "environment": s.ENVIRONMENT,
            "debug": s.DEBUG,
        }
        if s.LARK_APP_ID or s.LARK_APP_SECRET:
            values["lark_token"] = LarkTokenConfig(app_id=s.LARK_APP_ID, app_secret=s.LARK_APP_SECRET)
        if s.REDIS_HOST:
            values["redis"] = RedisConfig(
                host=s.REDIS_HOST,
                port=s.REDIS_PORT,
                password=s.REDIS_PASSWORD,
                ssl=s.REDIS_SSL,
                cluster_mode=s.REDIS_CLUSTER_MODE,
                db=s.REDIS_DB,
            )
        values.update(overrides)
        return cls(**values)

    def with_channel(self, channel: str) -> "Config":
        return self.model_copy(update={"channel": channel})


