"""
Lark output: webhook or bot API.

Handles:
- tenant_access_token lifecycle (cached for expire - 10 min, Redis or in-process)
- chat name -> chat_id resolution (paginated im/v1/chats, cached without expiry)
- Bot API: im/v1/messages with a "post" rich-text envelope
- Webhook: same envelope, no auth
"""

import json

import structlog

from commonlog.cache.store import TokenStore
from commonlog.config import Config, settings
from commonlog.exceptions import (
    ChannelNotFoundError,
    MissingCredentialError,
    TransportError,
    UpstreamError,
)
from commonlog.formatting import LarkPost, format_lark
from commonlog.log import debug_log
from commonlog.providers.base import Provider
from commonlog.types import Attachment, ProviderName

logger = structlog.get_logger()


def token_url() -> str:
    return f"{settings.LARK_BASE_URL}/auth/v3/tenant_access_token/internal"


def chats_url() -> str:
    return f"{settings.LARK_BASE_URL}/im/v1/chats"


def messages_url() -> str:
    return f"{settings.LARK_BASE_URL}/im/v1/messages"


def post_content(post: LarkPost) -> dict:
    return {
        "post": {
            settings.LARK_POST_LOCALE: {
                "title": post.title,
                "content": [[{"tag": "text", "text": post.text}]],
            }
        }
    }


class LarkProvider(Provider):
    name = ProviderName.LARK.value

    def __init__(self, http=None, store: TokenStore | None = None):
        super().__init__(http)
        self.store = store or TokenStore()

    # ------------------------------------------------------------------
    # Token management
    # ------------------------------------------------------------------

    def get_tenant_access_token(self, cfg: Config) -> str:
        """Cached tenant_access_token for cfg.lark_token, fetched on miss."""
        app_id, app_secret = cfg.lark_token.app_id, cfg.lark_token.app_secret
        cached = self.store.get_token(cfg, app_id, app_secret)
        if cached:
            debug_log(cfg, "lark.token_cache_hit")
            return cached

        resp = self.http.post(token_url(), json={"app_id": app_id, "app_secret": app_secret})
        if not resp.is_success:
            raise TransportError("lark token response", resp.status_code, resp.text)
        data = resp.json()
        if data.get("code") != 0:
            logger.error("lark.token_refresh_failed", code=data.get("code"), msg=data.get("msg"))
            raise UpstreamError(f"lark token error: {data.get('msg')}", data.get("code"))

        token = data.get("tenant_access_token")
        if not token:
            logger.error("lark.token_missing", keys=sorted(data))
            raise UpstreamError("lark token error: response has no tenant_access_token", data.get("code"))
        ttl = self.store.put_token(cfg, app_id, app_secret, token, data.get("expire", 7200))
        logger.info("lark.token_refreshed", expires_in=data.get("expire"), cached_for=ttl)
        return token

    def _access_token(self, cfg: Config) -> str:
        if cfg.lark_token and cfg.lark_token.complete:
            debug_log(cfg, "lark.fetching_tenant_token", app_id_len=len(cfg.lark_token.app_id))
            return self.get_tenant_access_token(cfg)
        if not cfg.token:
            raise MissingCredentialError("lark_token app_id/app_secret or token is required for Lark webclient method")
        return cfg.token

    # ------------------------------------------------------------------
    # Chat resolution
    # ------------------------------------------------------------------

    def get_chat_id(self, cfg: Config, token: str, channel_name: str) -> str:
        """chat_id for a group name, walking every page of im/v1/chats on a cache miss."""
        cached = self.store.get_chat_id(cfg, channel_name)
        if cached:
            debug_log(cfg, "lark.chat_id_cache_hit", channel=channel_name)
            return cached

        failed = f"failed to get chat_id for channel '{channel_name}'"
        headers = {"Authorization": f"Bearer {token}"}
        page_token = ""
        has_more = True
        pages = 0
        while has_more:
            params = {"page_size": settings.LARK_CHAT_PAGE_SIZE}
            if page_token:
                params["page_token"] = page_token
            resp = self.http.get(chats_url(), params=params, headers=headers)
            pages += 1
            if not resp.is_success:
                raise TransportError(f"{failed}: lark chats API response", resp.status_code, resp.text)
            body = resp.json()
            if body.get("code") != 0:
                raise UpstreamError(f"{failed}: lark API error: {body.get('msg')}", body.get("code"))

            data = body.get("data") or {}
            for item in data.get("items") or []:
                if item.get("name") == channel_name:
                    chat_id = item.get("chat_id")
                    if not chat_id:
                        raise UpstreamError(f"{failed}: chat entry has no chat_id", body.get("code"))
                    self.store.put_chat_id(cfg, channel_name, chat_id)
                    debug_log(cfg, "lark.chat_id_resolved", channel=channel_name, pages=pages)
                    return chat_id

            next_token = data.get("page_token") or ""
            has_more = bool(data.get("has_more"))
            # has_more without a fresh cursor would request the same page again
            if has_more and (not next_token or next_token == page_token):
                logger.error("lark.chats_pagination_stalled", channel=channel_name, pages=pages)
                raise UpstreamError(f"{failed}: chats listing reports more pages but gave no new page_token")
            page_token = next_token

        raise ChannelNotFoundError(f"{failed}: not found in {pages} page(s)")

    # ------------------------------------------------------------------
    # Bot API
    # ------------------------------------------------------------------

    def send_webclient(self, message: str, attachment: Attachment | None, cfg: Config):
        post = format_lark(message, attachment, cfg)
        token = self._access_token(cfg)
        chat_id = self.get_chat_id(cfg, token, cfg.channel)

        payload = {
            "receive_id": chat_id,
            "msg_type": "post",
            "content": json.dumps(post_content(post), ensure_ascii=False),
        }
        resp = self._post_json(
            cfg,
            f"{messages_url()}?receive_id_type=chat_id",
            payload,
            "WebClient",
            headers={"Authorization": f"Bearer {token}"},
        )
        data = resp.json()
        if data.get("code") != 0:
            logger.error("lark.send_message_failed", code=data.get("code"), msg=data.get("msg"))
            raise UpstreamError(f"lark API error: {data.get('msg')}", data.get("code"))
        logger.info("lark.sent", method="webclient", channel=cfg.channel)

    # ------------------------------------------------------------------
    # Webhook
    # ------------------------------------------------------------------

    def send_webhook(self, message: str, attachment: Attachment | None, cfg: Config):
        post = format_lark(message, attachment, cfg)
        webhook_url = cfg.token
        if not webhook_url:
            raise MissingCredentialError("webhook URL is required for Lark webhook method")
        debug_log(cfg, "lark.webhook_sending", url_len=len(webhook_url))

        resp = self._post_json(
            cfg, webhook_url, {"msg_type": "post", "content": post_content(post)}, "webhook"
        )
        try:
            data = resp.json()
        except ValueError:
            data = {}
        code = data.get("code", data.get("StatusCode", 0)) if isinstance(data, dict) else 0
        if code:
            logger.error("lark.webhook_failed", code=code, msg=data.get("msg"))
            raise UpstreamError(f"lark webhook error: {data.get('msg')}", code)
        logger.info("lark.sent", method="webhook")
