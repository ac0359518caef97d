"""
Per-domain content extraction rules for chat web apps.

A tab "has a selector" when its domain appears here; those tabs are the
ones the monitor loop polls. Each rule knows how to find the newest
incoming message (and, when the app exposes it, the sender) in the DOM.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from urllib.parse import urlparse


@dataclass(frozen=True)
class SelectorConfig:
    """How to read messages from one web app."""

    domain: str
    message_selector: str
    sender_selector: str | None
    source_name: str


SELECTOR_CONFIGS: tuple[SelectorConfig, ...] = (
    SelectorConfig(
        domain="meet.google.com",
        message_selector="[data-is-own-message='false'] span[data-message-text]",
        sender_selector="[data-sender-nickname]",
        source_name="google-meet",
    ),
    SelectorConfig(
        domain="teams.microsoft.com",
        message_selector="[data-testid='message-content']",
        sender_selector="[data-testid='message-sender']",
        source_name="teams",
    ),
    SelectorConfig(
        domain="discord.com",
        message_selector="[data-testid='message-content']",
        sender_selector="[data-testid='username']",
        source_name="discord",
    ),
    SelectorConfig(
        domain="web.whatsapp.com",
        message_selector="[data-testid='msg-container'] [class*='message']",
        sender_selector="[data-testid='msg-sender']",
        source_name="whatsapp",
    ),
    SelectorConfig(
        domain="web.telegram.org",
        message_selector=".message-content",
        sender_selector=".message-sender",
        source_name="telegram",
    ),
)


def extract_domain(url: str) -> str:
    """Host part of a URL, or "" if there is none."""
    try:
        return urlparse(url).hostname or ""
    except ValueError:
        return ""


def get_selector_for_domain(domain: str) -> SelectorConfig | None:
    for config in SELECTOR_CONFIGS:
        if config.domain == domain:
            return config
    return None


def has_selector_for_domain(domain: str) -> bool:
    return get_selector_for_domain(domain) is not None


def build_read_script(config: SelectorConfig) -> str:
    """
    JavaScript that returns the newest message as a JSON string
    {"sender": ..., "message": ...}, or null when there is none.
    """
    message_selector = json.dumps(config.message_selector)
    sender_selector = json.dumps(config.sender_selector)
    return f"""(() => {{
  const nodes = document.querySelectorAll({message_selector});
  if (!nodes.length) return null;
  const message = (nodes[nodes.length - 1].textContent || "").trim();
  if (!message) return null;
  let sender = "";
  const senderSelector = {sender_selector};
  if (senderSelector) {{
    const senders = document.querySelectorAll(senderSelector);
    if (senders.length) sender = (senders[senders.length - 1].textContent || "").trim();
  }}
  return JSON.stringify({{sender, message}});
}})()"""


def parse_read_result(raw: str | None) -> tuple[str, str] | None:
    """
    Decode what build_read_script() returned.

    Returns (sender, message) or None when the tab has no message yet.
    Raises ValueError on output that is not the expected JSON shape.
    """
    if raw is None or raw in ("", "null"):
        return None
    data = json.loads(raw)
    if data is None:
        return None
    if not isinstance(data, dict) or not isinstance(data.get("message"), str):
        raise ValueError(f"Unexpected read result: {raw[:200]}")
    sender = data.get("sender") or ""
    return str(sender), data["message"]


def message_identity(message: str) -> str:
    """Stable fingerprint of a message body, used for change detection."""
    return hashlib.sha256(message.encode("utf-8")).hexdigest()[:16]
