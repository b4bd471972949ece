"""Alert dispatch to Slack and Lark, by webhook or web API."""

from commonlog.cache.memory import (
    Cache,
    InMemoryCache,
    close_global_cache,
    get_global_cache,
    set_global_cache,
)
from commonlog.config import Config, LarkTokenConfig, RedisConfig, Settings
from commonlog.exceptions import (
    ChannelNotFoundError,
    CommonLogError,
    ConfigurationError,
    MissingCredentialError,
    TransportError,
    UnknownProviderError,
    UnknownSendMethodError,
    UpstreamError,
)
from commonlog.log import configure_logging
from commonlog.logger import Logger
from commonlog.types import (
    AlertLevel,
    Attachment,
    ChannelResolver,
    DefaultChannelResolver,
    ProviderName,
    SendMethod,
)

INFO = AlertLevel.INFO
WARN = AlertLevel.WARN
ERROR = AlertLevel.ERROR

__all__ = [
    "INFO",
    "WARN",
    "ERROR",
    "AlertLevel",
    "Attachment",
    "Cache",
    "ChannelNotFoundError",
    "ChannelResolver",
    "CommonLogError",
    "Config",
    "ConfigurationError",
    "DefaultChannelResolver",
    "InMemoryCache",
    "LarkTokenConfig",
    "Logger",
    "MissingCredentialError",
    "ProviderName",
    "RedisConfig",
    "SendMethod",
    "Settings",
    "TransportError",
    "UnknownProviderError",
    "UnknownSendMethodError",
    "UpstreamError",
    "close_global_cache",
    "configure_logging",
    "get_global_cache",
    "set_global_cache",
]
