from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Protocol, runtime_checkable


class AlertLevel(IntEnum):
    INFO = 0
    WARN = 1
    ERROR = 2


class SendMethod(str, Enum):
    WEBCLIENT = "webclient"
    WEBHOOK = "webhook"


class ProviderName(str, Enum):
    SLACK = "slack"
    LARK = "lark"


@dataclass(frozen=True)
class Attachment:
    """A file attached to an alert: a public URL, inline text, or both."""
    url: str = ""
    file_name: str = ""
    content: str = ""


@runtime_checkable
class ChannelResolver(Protocol):
    def resolve_channel(self, level: AlertLevel) -> str: ...


@dataclass
class DefaultChannelResolver:
    """Map-based resolution; unmapped levels go to default_channel."""
    channel_map: dict[AlertLevel, str] = field(default_factory=dict)
    default_channel: str = ""

    def resolve_channel(self, level: AlertLevel) -> str:
        return self.channel_map.get(level, self.default_channel)
