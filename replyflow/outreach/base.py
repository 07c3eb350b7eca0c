from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol


@dataclass
class OutboundMessage:
    """
    One outreach email ready for delivery.

    `text` is the plain-text body; `html` is optional rich content built
    from it. `metadata` carries context for logging (e.g., outreach_id).
    """

    to: str
    subject: str
    text: str
    reply_to: str | None = None
    html: str | None = None
    metadata: Mapping[str, Any] | None = None


class DeliveryError(Exception):
    """Raised when a channel cannot deliver a message."""

    def __init__(self, message: str, code: str = "DELIVERY_FAILED"):
        super().__init__(message)
        self.code = code


class DeliveryChannel(Protocol):
    """
    Protocol for an email delivery implementation.

    Other transports (e.g., an HTTP email API) should implement this.
    """

    name: str
    sender: str

    def send(self, message: OutboundMessage) -> str:
        """Deliver the message and return the provider message id."""


def text_to_html(text: str) -> str:
    return text.replace("\n", "<br>")
