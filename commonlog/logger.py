"""
Logger: entry point that decides whether and where an alert goes.

INFO is written locally only. WARN and ERROR resolve a channel, fold any trace
into the attachment and hand off to the configured provider.
"""

import httpx
import structlog

from commonlog.cache.memory import Cache
from commonlog.cache.store import TokenStore
from commonlog.config import Config, settings
from commonlog.formatting import merge_trace
from commonlog.log import debug_log
from commonlog.providers.base import Provider
from commonlog.providers.router import create_provider, parse_provider
from commonlog.types import AlertLevel, Attachment, ProviderName

logger = structlog.get_logger()


class Logger:
    def __init__(
        self,
        config: Config,
        http: httpx.Client | None = None,
        cache: Cache | None = None,
    ):
        self.config = config
        self._owns_http = http is None
        self._http = http or httpx.Client(timeout=settings.HTTP_TIMEOUT)
        self._store = TokenStore(cache=cache)
        self._providers: dict[ProviderName, Provider] = {
            kind: create_provider(kind, self._http, self._store) for kind in ProviderName
        }
        self.provider_name = parse_provider(config.provider)
        debug_log(
            config,
            "logger.created",
            provider=self.provider_name.value,
            send_method=config.send_method,
        )

    @property
    def provider(self) -> Provider:
        return self._providers[self.provider_name]

    def close(self):
        """Close the HTTP client if this Logger created it."""
        if self._owns_http:
            self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def resolve_channel(self, level: AlertLevel) -> str:
        if self.config.channel_resolver is not None:
            return self.config.channel_resolver.resolve_channel(level)
        return self.config.channel

    def send(
        self,
        level: AlertLevel,
        message: str,
        attachment: Attachment | None = None,
        trace: str = "",
    ):
        self.send_to_channel(level, message, attachment, trace, "")

    def send_to_channel(
        self,
        level: AlertLevel,
        message: str,
        attachment: Attachment | None = None,
        trace: str = "",
        channel: str = "",
    ):
        """Send, with ``channel`` overriding the resolver and the default channel."""
        self._dispatch(self.provider, level, message, attachment, trace, channel)

    def send_with_provider(
        self,
        provider: str | ProviderName,
        level: AlertLevel,
        message: str,
        attachment: Attachment | None = None,
        trace: str = "",
        channel: str = "",
    ):
        """Send through a named provider instead of the configured one.

        An unrecognised name falls back to Slack.
        """
        kind = parse_provider(provider)
        debug_log(self.config, "logger.custom_provider", requested=str(provider), using=kind.value)
        self._dispatch(self._providers[kind], level, message, attachment, trace, channel)

    custom_send = send_with_provider

    def _dispatch(
        self,
        provider: Provider,
        level: AlertLevel,
        message: str,
        attachment: Attachment | None,
        trace: str,
        channel: str,
    ):
        cfg = self.config
        debug_log(
            cfg,
            "logger.send",
            level=int(level),
            message_len=len(message),
            channel=channel,
            has_attachment=attachment is not None,
            has_trace=bool(trace),
        )

        if level == AlertLevel.INFO:
            logger.info("commonlog.info", message=message)
            return

        resolved = channel or self.resolve_channel(level)
        debug_log(cfg, "logger.channel_resolved", channel=resolved, overridden=bool(channel))

        attachment = merge_trace(attachment, trace)
        try:
            provider.send_to_channel(level, message, attachment, cfg.with_channel(resolved), resolved)
        except Exception as e:
            debug_log(cfg, "logger.send_failed", provider=provider.name, error=str(e))
            raise
        debug_log(cfg, "logger.send_ok", provider=provider.name)
