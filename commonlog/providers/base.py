from abc import ABC, abstractmethod

import httpx
import structlog

from commonlog.config import Config, settings
from commonlog.exceptions import TransportError, UnknownSendMethodError
from commonlog.log import debug_log
from commonlog.types import AlertLevel, Attachment, SendMethod

logger = structlog.get_logger()


class Provider(ABC):
    """One chat backend, reachable by webhook or by its authenticated web API."""

    name: str = ""

    def __init__(self, http: httpx.Client | None = None):
        self._http = http
        self._owns_http = http is None

    @property
    def http(self) -> httpx.Client:
        if self._http is None:
            self._http = httpx.Client(timeout=settings.HTTP_TIMEOUT)
        return self._http

    def close(self):
        if self._owns_http and self._http is not None:
            self._http.close()
            self._http = None

    def send(self, level: AlertLevel, message: str, attachment: Attachment | None, cfg: Config):
        self.send_to_channel(level, message, attachment, cfg, cfg.channel)

    def send_to_channel(
        self,
        level: AlertLevel,
        message: str,
        attachment: Attachment | None,
        cfg: Config,
        channel: str,
    ):
        """Deliver one message. Raises on any failure; nothing is retried."""
        debug_log(cfg, f"{self.name}.send_to_channel", level=int(level), method=cfg.send_method, channel=channel)
        cfg = cfg.with_channel(channel)
        if cfg.send_method == SendMethod.WEBCLIENT:
            self.send_webclient(message, attachment, cfg)
        elif cfg.send_method == SendMethod.WEBHOOK:
            self.send_webhook(message, attachment, cfg)
        else:
            err = UnknownSendMethodError(self.name, cfg.send_method)
            debug_log(cfg, f"{self.name}.unknown_send_method", error=str(err))
            raise err

    @abstractmethod
    def send_webhook(self, message: str, attachment: Attachment | None, cfg: Config): ...

    @abstractmethod
    def send_webclient(self, message: str, attachment: Attachment | None, cfg: Config): ...

    def _post_json(self, cfg: Config, url: str, payload: dict, what: str, headers: dict | None = None) -> httpx.Response:
        """POST JSON and fail on non-2xx. httpx transport errors propagate unchanged."""
        resp = self.http.post(url, json=payload, headers=headers)
        debug_log(cfg, f"{self.name}.response", what=what, status=resp.status_code, body_len=len(resp.content))
        if not resp.is_success:
            raise TransportError(f"{self.name} {what} response", resp.status_code, resp.text)
        return resp
