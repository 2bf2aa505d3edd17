"""Domain layer: entities and value objects. No dependencies on outer layers."""

from sigchat.domain.entities import Contact, Conversation, Message

__all__ = ["Contact", "Conversation", "Message"]
