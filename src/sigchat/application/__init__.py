"""Application layer: session coordinator, ports, DTOs, and errors. Depends only on domain."""

from sigchat.application.dto import ReceiptEvent, ReceivedEvent, SessionConfig
from sigchat.application.errors import ConfigError, SigchatError, TransportError
from sigchat.application.ports import MessagingTransport, Observer
from sigchat.application.session import Session, load_contacts, load_conversations

__all__ = [
    "ConfigError",
    "MessagingTransport",
    "Observer",
    "ReceiptEvent",
    "ReceivedEvent",
    "Session",
    "SessionConfig",
    "SigchatError",
    "TransportError",
    "load_contacts",
    "load_conversations",
]
