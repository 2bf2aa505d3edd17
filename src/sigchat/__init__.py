"""
sigchat core: clean-architecture layout.

- domain: entities (Contact, Message, Conversation). No outer dependencies.
- application: Session coordinator, MessagingTransport port, event DTOs, errors.
- infrastructure: adapters (InMemoryTransport, SignalCliTransport), phone, config.
"""

__version__ = "0.4.1"

from sigchat.application import (
    ConfigError,
    MessagingTransport,
    ReceiptEvent,
    ReceivedEvent,
    Session,
    SessionConfig,
    SigchatError,
    TransportError,
)
from sigchat.domain import Contact, Conversation, Message
from sigchat.infrastructure import InMemoryTransport, SignalCliTransport, build_session

__all__ = [
    "ConfigError",
    "Contact",
    "Conversation",
    "InMemoryTransport",
    "Message",
    "MessagingTransport",
    "ReceiptEvent",
    "ReceivedEvent",
    "Session",
    "SessionConfig",
    "SigchatError",
    "SignalCliTransport",
    "TransportError",
    "__version__",
    "build_session",
]
