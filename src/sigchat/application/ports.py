"""Application ports (interfaces). Implemented by infrastructure adapters."""

from collections.abc import Callable
from typing import Protocol

from sigchat.application.dto import ReceiptEvent, ReceivedEvent
from sigchat.domain import Conversation

ReceivedCallback = Callable[[ReceivedEvent], None]
ReceiptCallback = Callable[[ReceiptEvent], None]
Observer = Callable[[Conversation], None]


class MessagingTransport(Protocol):
    """Talks to the messaging daemon. Sends text and pumps inbound events to callbacks."""

    def send(self, number: str, text: str) -> int:
        """Send text to number. Returns the sender timestamp; raises TransportError on failure."""
        ...

    def receive(self) -> None:
        """Pump pending inbound events into the registered callbacks."""
        ...

    def on_received(self, callback: ReceivedCallback) -> None:
        """Register the callback for inbound text messages."""
        ...

    def on_receipt(self, callback: ReceiptCallback) -> None:
        """Register the callback for delivery/read receipts."""
        ...
