"""
Slack output.

- webhook: Config.token is the incoming-webhook URL
- webclient: chat.postMessage with slack_token (or token) as bearer
"""

import structlog

from commonlog.config import Config, settings
from commonlog.exceptions import MissingCredentialError, UpstreamError
from commonlog.formatting import format_slack
from commonlog.log import debug_log
from commonlog.providers.base import Provider
from commonlog.types import Attachment, ProviderName

logger = structlog.get_logger()


class SlackProvider(Provider):
    name = ProviderName.SLACK.value

    def send_webhook(self, message: str, attachment: Attachment | None, cfg: Config):
        text = format_slack(message, attachment, cfg)
        webhook_url = cfg.token
        if not webhook_url:
            raise MissingCredentialError("webhook URL is required for Slack webhook method")

        payload = {"text": text}
        if cfg.channel:
            payload["channel"] = cfg.channel
        debug_log(cfg, "slack.webhook_sending", url_len=len(webhook_url), channel=cfg.channel)
        self._post_json(cfg, webhook_url, payload, "webhook")
        logger.info("slack.sent", method="webhook", channel=cfg.channel)

    def send_webclient(self, message: str, attachment: Attachment | None, cfg: Config):
        text = format_slack(message, attachment, cfg)
        token = cfg.slack_token or cfg.token
        if not token:
            raise MissingCredentialError("token is required for Slack webclient method")
        debug_log(cfg, "slack.webclient_sending", token_len=len(token), channel=cfg.channel)

        resp = self._post_json(
            cfg,
            settings.SLACK_API_URL,
            {"channel": cfg.channel, "text": text},
            "WebClient",
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json; charset=utf-8",
            },
        )
        data = resp.json()
        if not data.get("ok", False):
            logger.error("slack.post_message_failed", error=data.get("error"), channel=cfg.channel)
            raise UpstreamError(f"slack API error: {data.get('error')}", data.get("error"))
        logger.info("slack.sent", method="webclient", channel=cfg.channel)
