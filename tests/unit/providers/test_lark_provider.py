import json
from unittest.mock import MagicMock

import httpx
import pytest

from commonlog.cache.store import TokenStore
from commonlog.config import Config, LarkTokenConfig
from commonlog.exceptions import (
    ChannelNotFoundError,
    MissingCredentialError,
    TransportError,
    UnknownSendMethodError,
    UpstreamError,
)
from commonlog.providers.lark import LarkProvider
from commonlog.types import AlertLevel, Attachment

BASE = "https://open.larksuite.com/open-apis"
CREDS = LarkTokenConfig(app_id="cli_app", app_secret="shh")


class FakeLark:
    """Minimal Lark open API: token, paginated chats, messages."""

    def __init__(self, expire=7200, pages=None):
        self.expire = expire
        self.pages = pages or [
            {"items": [{"chat_id": "oc_1", "name": "general"}], "page_token": "p2", "has_more": True},
            {"items": [{"chat_id": "oc_2", "name": "alerts"}], "page_token": "", "has_more": False},
        ]
        self.calls = {"token": 0, "chats": 0, "messages": 0}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/auth/v3/tenant_access_token/internal"):
            self.calls["token"] += 1
            return httpx.Response(
                200, json={"code": 0, "msg": "ok", "tenant_access_token": "t-abc", "expire": self.expire}
            )
        if path.endswith("/im/v1/chats"):
            self.calls["chats"] += 1
            token = request.url.params.get("page_token", "")
            index = 1 if token == "p2" else 0
            return httpx.Response(200, json={"code": 0, "msg": "ok", "data": self.pages[index]})
        if path.endswith("/im/v1/messages"):
            self.calls["messages"] += 1
            return httpx.Response(200, json={"code": 0, "msg": "ok"})
        return httpx.Response(404)


@pytest.fixture
def fake_lark():
    return FakeLark()


@pytest.fixture
def lark(fake_lark, recording_transport, memory_cache):
    transport = recording_transport(fake_lark)
    provider = LarkProvider(transport.client(), store=TokenStore(cache=memory_cache))
    provider.transport = transport
    return provider


def webclient_cfg(**kw):
    return Config(provider="lark", send_method="webclient", lark_token=CREDS, environment="prod", **kw)


def test_token_cached_with_margin(lark, memory_cache, clock):
    cfg = webclient_cfg()
    assert lark.get_tenant_access_token(cfg) == "t-abc"

    key = "commonlog_lark_token:cli_app:shh"
    clock.advance(7200 - 600 - 1)
    assert memory_cache.get(key) == "t-abc"
    clock.advance(1)
    assert memory_cache.get(key) is None


def test_token_ttl_3600_is_3000(fake_lark, recording_transport):
    fake_lark.expire = 3600
    cache = MagicMock()
    cache.get.return_value = None
    provider = LarkProvider(recording_transport(fake_lark).client(), store=TokenStore(cache=cache))

    provider.get_tenant_access_token(webclient_cfg())

    cache.set.assert_called_once_with("commonlog_lark_token:cli_app:shh", "t-abc", 3000)


def test_short_token_ttl_floors_to_60(fake_lark, recording_transport):
    fake_lark.expire = 300
    cache = MagicMock()
    cache.get.return_value = None
    provider = LarkProvider(recording_transport(fake_lark).client(), store=TokenStore(cache=cache))

    provider.get_tenant_access_token(webclient_cfg())

    cache.set.assert_called_once_with("commonlog_lark_token:cli_app:shh", "t-abc", 60)


def test_token_reused_from_cache(lark, fake_lark):
    cfg = webclient_cfg()
    lark.get_tenant_access_token(cfg)
    lark.get_tenant_access_token(cfg)
    assert fake_lark.calls["token"] == 1


def test_token_error_not_cached(recording_transport, memory_cache):
    transport = recording_transport(
        lambda r: httpx.Response(200, json={"code": 10003, "msg": "invalid app_secret"})
    )
    provider = LarkProvider(transport.client(), store=TokenStore(cache=memory_cache))

    with pytest.raises(UpstreamError) as exc:
        provider.get_tenant_access_token(webclient_cfg())
    assert exc.value.provider_code == 10003
    assert len(memory_cache) == 0


def test_chat_id_found_on_second_page_is_cached(lark, fake_lark, memory_cache, clock):
    cfg = webclient_cfg()
    assert lark.get_chat_id(cfg, "t-abc", "alerts") == "oc_2"
    assert fake_lark.calls["chats"] == 2

    first, second = lark.transport.requests
    assert first.url.params["page_size"] == "10"
    assert "page_token" not in first.url.params
    assert second.url.params["page_token"] == "p2"
    assert first.headers["authorization"] == "Bearer t-abc"

    clock.advance(10 * 365 * 86400)
    assert lark.get_chat_id(cfg, "t-abc", "alerts") == "oc_2"
    assert fake_lark.calls["chats"] == 2
    assert memory_cache.get("commonlog_lark_chat_id:prod:alerts") == "oc_2"


def test_chat_id_not_found(lark, memory_cache):
    with pytest.raises(ChannelNotFoundError) as exc:
        lark.get_chat_id(webclient_cfg(), "t-abc", "missing")
    assert "missing" in str(exc.value)
    assert len(memory_cache) == 0


def test_chat_listing_errors(recording_transport):
    provider = LarkProvider(recording_transport(lambda r: httpx.Response(403)).client())
    with pytest.raises(TransportError):
        provider.get_chat_id(webclient_cfg(), "t", "alerts")

    provider = LarkProvider(
        recording_transport(lambda r: httpx.Response(200, json={"code": 99991663, "msg": "bad token"})).client()
    )
    with pytest.raises(UpstreamError):
        provider.get_chat_id(webclient_cfg(), "t", "alerts")


@pytest.mark.parametrize("next_token", ["", "same"])
def test_chat_pagination_without_new_cursor_stops(recording_transport, memory_cache, next_token):
    def handler(request):
        data = {"items": [], "page_token": next_token, "has_more": True}
        return httpx.Response(200, json={"code": 0, "data": data})

    def first_page_then_repeat(request):
        # "same": the cursor handed out on page 1 is returned again on page 2
        if next_token == "same" and "page_token" not in request.url.params:
            return httpx.Response(200, json={"code": 0, "data": {"items": [], "page_token": "same", "has_more": True}})
        return handler(request)

    transport = recording_transport(first_page_then_repeat)
    provider = LarkProvider(transport.client(), store=TokenStore(cache=memory_cache))

    with pytest.raises(UpstreamError) as exc:
        provider.get_chat_id(webclient_cfg(), "t", "alerts")
    assert "alerts" in str(exc.value)
    assert len(transport.requests) == (1 if next_token == "" else 2)
    assert len(memory_cache) == 0


def test_chat_listing_errors_name_the_channel(recording_transport):
    provider = LarkProvider(recording_transport(lambda r: httpx.Response(500)).client())
    with pytest.raises(TransportError) as exc:
        provider.get_chat_id(webclient_cfg(), "t", "alerts")
    assert "failed to get chat_id for channel 'alerts'" in str(exc.value)
    assert exc.value.status_code == 500

    provider = LarkProvider(
        recording_transport(lambda r: httpx.Response(200, json={"code": 99991663, "msg": "bad token"})).client()
    )
    with pytest.raises(UpstreamError) as exc:
        provider.get_chat_id(webclient_cfg(), "t", "alerts")
    assert "failed to get chat_id for channel 'alerts'" in str(exc.value)


def test_token_response_without_token(recording_transport, memory_cache):
    transport = recording_transport(lambda r: httpx.Response(200, json={"code": 0, "msg": "ok", "expire": 7200}))
    provider = LarkProvider(transport.client(), store=TokenStore(cache=memory_cache))

    with pytest.raises(UpstreamError):
        provider.get_tenant_access_token(webclient_cfg())
    assert len(memory_cache) == 0


def test_chat_entry_without_chat_id(recording_transport, memory_cache):
    data = {"items": [{"name": "alerts"}], "has_more": False}
    transport = recording_transport(lambda r: httpx.Response(200, json={"code": 0, "data": data}))
    provider = LarkProvider(transport.client(), store=TokenStore(cache=memory_cache))

    with pytest.raises(UpstreamError):
        provider.get_chat_id(webclient_cfg(), "t", "alerts")
    assert len(memory_cache) == 0


def test_webclient_send(lark, fake_lark):
    cfg = webclient_cfg(service_name="api")
    lark.send_to_channel(AlertLevel.ERROR, "boom", Attachment(url="https://x/1"), cfg, "alerts")

    msg = lark.transport.requests[-1]
    assert msg.url.path == "/open-apis/im/v1/messages"
    assert msg.url.params["receive_id_type"] == "chat_id"
    assert msg.headers["authorization"] == "Bearer t-abc"
    body = json.loads(msg.content)
    assert body["receive_id"] == "oc_2"
    assert body["msg_type"] == "post"
    content = json.loads(body["content"])
    assert content == {
        "post": {
            "zh_cn": {
                "title": "api - prod",
                "content": [[{"tag": "text", "text": "boom\n\n**Attachment:** https://x/1"}]],
            }
        }
    }
    assert fake_lark.calls == {"token": 1, "chats": 2, "messages": 1}


def test_webclient_static_token(lark, fake_lark):
    cfg = Config(provider="lark", send_method="webclient", token="t-static", environment="prod")
    lark.send_to_channel(AlertLevel.WARN, "m", None, cfg, "alerts")
    assert fake_lark.calls["token"] == 0
    assert lark.transport.requests[-1].headers["authorization"] == "Bearer t-static"


def test_webclient_requires_credentials(lark):
    cfg = Config(provider="lark", send_method="webclient")
    with pytest.raises(MissingCredentialError):
        lark.send_to_channel(AlertLevel.WARN, "m", None, cfg, "alerts")
    assert lark.transport.requests == []


def test_webclient_logical_error(recording_transport, memory_cache):
    def handler(request):
        if request.url.path.endswith("/im/v1/messages"):
            return httpx.Response(200, json={"code": 230002, "msg": "bot not in chat"})
        return FakeLark()(request)

    provider = LarkProvider(recording_transport(handler).client(), store=TokenStore(cache=memory_cache))
    with pytest.raises(UpstreamError):
        provider.send_to_channel(AlertLevel.ERROR, "m", None, webclient_cfg(), "alerts")


def test_webhook_payload(ok_transport):
    cfg = Config(provider="lark", send_method="webhook", token="https://open.larksuite.com/hook/abc")
    LarkProvider(ok_transport.client()).send(AlertLevel.ERROR, "m", Attachment(content="c"), cfg)

    assert ok_transport.json_bodies()[0] == {
        "msg_type": "post",
        "content": {
            "post": {
                "zh_cn": {
                    "title": "Alert",
                    "content": [[{"tag": "text", "text": "m\n\n**Trace Logs:**\n```\nc\n```"}]],
                }
            }
        },
    }


def test_webhook_status_error(recording_transport):
    cfg = Config(provider="lark", send_method="webhook", token="https://open.larksuite.com/hook/abc")
    provider = LarkProvider(recording_transport(lambda r: httpx.Response(502)).client())
    with pytest.raises(TransportError) as exc:
        provider.send(AlertLevel.ERROR, "m", None, cfg)
    assert exc.value.status_code == 502


def test_webhook_logical_error(recording_transport):
    cfg = Config(provider="lark", send_method="webhook", token="https://open.larksuite.com/hook/abc")
    transport = recording_transport(lambda r: httpx.Response(200, json={"code": 19001, "msg": "param invalid"}))
    with pytest.raises(UpstreamError):
        LarkProvider(transport.client()).send(AlertLevel.ERROR, "m", None, cfg)


def test_webhook_requires_url(ok_transport):
    with pytest.raises(MissingCredentialError):
        LarkProvider(ok_transport.client()).send(AlertLevel.ERROR, "m", None, Config(send_method="webhook"))


def test_unknown_send_method(lark):
    with pytest.raises(UnknownSendMethodError):
        lark.send(AlertLevel.ERROR, "m", None, Config(provider="lark", send_method="ftp"))
    assert lark.transport.requests == []
