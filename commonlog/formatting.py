"""
Message formatting per provider.

Slack gets a single mrkdwn string with a bold ``[service - environment]`` header.
Lark gets a (title, text) pair; the header becomes the post title.
"""
from __future__ import annotations

from dataclasses import dataclass, replace

from commonlog.config import Config
from commonlog.types import Attachment

DEFAULT_CONTENT_LABEL = "Trace Logs"
TRACE_FILE_NAME = "trace.log"
TRACE_SEPARATOR = "\n\n--- Trace Log ---\n"


@dataclass(frozen=True)
class LarkPost:
    title: str
    text: str


def header(cfg: Config) -> str:
    if cfg.service_name and cfg.environment:
        return f"{cfg.service_name} - {cfg.environment}"
    return cfg.service_name or cfg.environment


def _attachment_sections(attachment: Attachment | None, bold: str) -> str:
    if attachment is None:
        return ""
    out = ""
    if attachment.content:
        label = attachment.file_name or DEFAULT_CONTENT_LABEL
        out += f"\n\n{bold}{label}:{bold}\n```\n{attachment.content}\n```"
    if attachment.url:
        out += f"\n\n{bold}Attachment:{bold} {attachment.url}"
    return out


def format_slack(message: str, attachment: Attachment | None, cfg: Config) -> str:
    head = header(cfg)
    prefix = f"*[{head}]*\n" if head else ""
    return prefix + message + _attachment_sections(attachment, "*")


def format_lark(message: str, attachment: Attachment | None, cfg: Config) -> LarkPost:
    return LarkPost(
        title=header(cfg) or "Alert",
        text=message + _attachment_sections(attachment, "**"),
    )


def merge_trace(attachment: Attachment | None, trace: str) -> Attachment | None:
    """Fold a trace log into the attachment's inline content.

    Returns a new Attachment; the one passed in is left untouched.
    """
    if not trace:
        return attachment
    if attachment is None:
        return Attachment(file_name=TRACE_FILE_NAME, content=trace)
    if attachment.content:
        return replace(attachment, content=attachment.content + TRACE_SEPARATOR + trace)
    return replace(attachment, content=trace, file_name=TRACE_FILE_NAME)
