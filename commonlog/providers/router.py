"""
Provider lookup by name.

Known names map to their Provider class. Unknown names fall back to Slack unless
the caller asks for strict lookup.
"""

import httpx
import structlog

from commonlog.cache.store import TokenStore
from commonlog.exceptions import UnknownProviderError
from commonlog.providers.base import Provider
from commonlog.providers.lark import LarkProvider
from commonlog.providers.slack import SlackProvider
from commonlog.types import ProviderName

logger = structlog.get_logger()

DEFAULT_PROVIDER = ProviderName.SLACK


def parse_provider(name: str | ProviderName, strict: bool = False) -> ProviderName:
    try:
        return ProviderName(name)
    except ValueError:
        if strict:
            raise UnknownProviderError(f"unknown provider: {name!r}") from None
        logger.warning("provider.unknown", provider=name, fallback=DEFAULT_PROVIDER.value)
        return DEFAULT_PROVIDER


def create_provider(
    name: str | ProviderName,
    http: httpx.Client | None = None,
    store: TokenStore | None = None,
    strict: bool = False,
) -> Provider:
    kind = parse_provider(name, strict=strict)
    if kind is ProviderName.LARK:
        return LarkProvider(http, store=store)
    return SlackProvider(http)
