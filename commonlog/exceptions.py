"""
Exception hierarchy. Every error carries a stable ``code`` string.

Network-level failures are not wrapped: ``httpx`` transport exceptions reach the
caller unchanged.
"""
from __future__ import annotations


class CommonLogError(Exception):
    """Base class."""
    code: str = "COMMONLOG_ERROR"

    def __init__(self, message: str = "", code: str | None = None):
        self.message = message
        if code:
            self.code = code
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error_code": self.code, "message": self.message}


# === Configuration ===
class ConfigurationError(CommonLogError):
    code = "CONFIGURATION_ERROR"

class MissingCredentialError(ConfigurationError):
    code = "MISSING_CREDENTIAL"

class UnknownSendMethodError(ConfigurationError):
    code = "UNKNOWN_SEND_METHOD"

    def __init__(self, provider: str, method: str):
        self.provider = provider
        self.method = method
        super().__init__(f"unknown send method for {provider}: {method!r}")

class UnknownProviderError(ConfigurationError):
    code = "UNKNOWN_PROVIDER"


# === Transport ===
class TransportError(CommonLogError):
    code = "HTTP_STATUS"

    def __init__(self, message: str, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"{message}: {status_code}")

    def to_dict(self) -> dict:
        return {**super().to_dict(), "status_code": self.status_code}


# === Upstream ===
class UpstreamError(CommonLogError):
    code = "UPSTREAM_ERROR"

    def __init__(self, message: str, provider_code: int | str | None = None):
        self.provider_code = provider_code
        super().__init__(message)


# === Resolution ===
class ChannelNotFoundError(CommonLogError):
    code = "CHANNEL_NOT_FOUND"
