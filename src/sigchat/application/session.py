"""Session: contact and conversation registries, receive/receipt reconciliation, and send."""

import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType

from sigchat.application.dto import ReceiptEvent, ReceivedEvent, SessionConfig
from sigchat.application.errors import TransportError
from sigchat.application.ports import MessagingTransport, Observer
from sigchat.domain import Contact, Conversation, Message

logger = logging.getLogger(__name__)


def _strip_identifier(identifier: str) -> str:
    return (identifier or "").strip()


def load_contacts(
    config: SessionConfig,
    known: Iterable[Contact] = (),
    normalize_identifier: Callable[[str], str] = _strip_identifier,
) -> dict[str, Contact]:
    """Build the contact registry: the local user plus any known contacts, keyed by number."""
    own_number = normalize_identifier(config.user_number)
    contacts = {own_number: Contact(number=own_number, name=config.user_name)}
    for contact in known:
        number = normalize_identifier(contact.number)
        if number in contacts:
            continue
        contacts[number] = Contact(number=number, name=contact.name)
    return contacts


def load_conversations(contacts: Mapping[str, Contact]) -> dict[Contact, Conversation]:
    """One empty conversation per contact."""
    return {contact: Conversation(contact=contact) for contact in contacts.values()}


class Session:
    """
    Owns the contact and conversation registries for one client session.

    Inbound events arrive through the transport callbacks (`on_received`,
    `on_receipt`); outbound text goes through `send`. All registry and
    conversation mutation happens under one lock. Transport calls and observer
    notifications happen outside it, so observers may call back into the session.
    """

    def __init__(
        self,
        transport: MessagingTransport,
        config: SessionConfig,
        *,
        contacts: Iterable[Contact] = (),
        normalize_identifier: Callable[[str], str] | None = None,
    ) -> None:
        self._transport = transport
        self._config = config
        self._normalize = normalize_identifier or _strip_identifier
        self._lock = threading.RLock()
        self._contacts = load_contacts(config, contacts, self._normalize)
        self._conversations = load_conversations(self._contacts)
        self._observers: list[tuple[Observer, bool]] = []
        self._next_local_key = -1
        self._sends_in_flight: dict[Contact, int] = {}
        self._early_receipts: dict[tuple[Contact, int], tuple[bool, bool]] = {}

        transport.on_received(self.on_received)
        transport.on_receipt(self.on_receipt)

    @property
    def me(self) -> Contact:
        """The local user's own contact."""
        return self._contacts[self._normalize(self._config.user_number)]

    # --- registries ---

    def resolve_contact(self, identifier: str) -> Contact:
        """Return the registered contact for identifier, registering a nameless one if unknown."""
        number = self._normalize(identifier)
        with self._lock:
            contact = self._contacts.get(number)
            if contact is None:
                contact = Contact(number=number)
                self._contacts[number] = contact
                logger.info("New contact: %s", number)
            return contact

    def resolve_conversation(self, contact: Contact) -> Conversation:
        """Return the conversation for contact, creating an empty one if there is none."""
        with self._lock:
            conversation = self._conversations.get(contact)
            if conversation is None:
                conversation = Conversation(contact=contact)
                self._conversations[contact] = conversation
                logger.info("New conversation for contact: %s", contact.number)
            return conversation

    def contacts(self) -> Mapping[str, Contact]:
        with self._lock:
            return MappingProxyType(dict(self._contacts))

    def conversations(self) -> Mapping[Contact, Conversation]:
        with self._lock:
            return MappingProxyType(dict(self._conversations))

    # --- observers ---

    def add_observer(self, observer: Observer, *, notify_on_receipts: bool = False) -> None:
        """Call observer with a conversation whenever it gains new content.

        With notify_on_receipts, also call it when a receipt changes message status.
        """
        with self._lock:
            self._observers.append((observer, notify_on_receipts))

    def remove_observer(self, observer: Observer) -> None:
        with self._lock:
            self._observers = [(o, r) for o, r in self._observers if o != observer]

    def _notify(self, conversation: Conversation, *, status_only: bool = False) -> None:
        with self._lock:
            observers = [o for o, on_receipts in self._observers if on_receipts or not status_only]
        for observer in observers:
            try:
                observer(conversation)
            except Exception:
                logger.exception("Observer %r failed for %s", observer, conversation.contact.number)

    # --- transport callbacks ---

    def on_received(self, event: ReceivedEvent) -> None:
        """Record an inbound message in the sender's conversation and notify observers."""
        with self._lock:
            contact = self.resolve_contact(event.source)
            message = Message(
                content=event.message,
                sender=contact.display_name,
                timestamp=event.timestamp,
                is_delivered=True,
                is_read=False,
            )
            conversation = self.resolve_conversation(contact)
            conversation.add_message(message)
        self._notify(conversation)

    def on_receipt(self, event: ReceiptEvent) -> None:
        """Apply delivery/read flags to the messages a receipt names. Unknown timestamps are skipped."""
        changed = False
        with self._lock:
            contact = self.resolve_contact(event.source)
            conversation = self.resolve_conversation(contact)
            for timestamp in event.timestamps:
                message = conversation.get(timestamp)
                if message is None:
                    if self._sends_in_flight.get(contact):
                        # may be for a send whose timestamp is not known yet
                        self._early_receipts[(contact, timestamp)] = (
                            event.is_delivery,
                            event.is_read,
                        )
                        logger.debug(
                            "Receipt from %s for %s held until pending send completes",
                            contact.number,
                            timestamp,
                        )
                    else:
                        logger.debug(
                            "Receipt from %s for unknown message %s ignored",
                            contact.number,
                            timestamp,
                        )
                    continue
                message.is_delivered = event.is_delivery
                message.is_read = event.is_read
                changed = True
        if changed:
            self._notify(conversation, status_only=True)

    # --- outbound ---

    def on_send(self, message: Message, conversation: Conversation) -> None:
        """Hook run after a pending message is recorded and before the transport is called."""

    def send(self, text: str, contact: Contact) -> int:
        """Record text as a pending message to contact, then hand it to the transport.

        The message is first stored under a provisional negative key and moved to
        the timestamp the transport reports once the send succeeds. If the
        transport fails the message stays in the conversation, marked failed,
        and the TransportError is re-raised. Receipts that arrive for the real
        timestamp before the transport returns are applied once it does.
        """
        with self._lock:
            contact = self.resolve_contact(contact.number)
            conversation = self.resolve_conversation(contact)
            local_key = self._next_local_key
            self._next_local_key -= 1
            message = Message(
                content=text,
                sender=self._config.user_name,
                timestamp=local_key,
                is_delivered=False,
                is_read=False,
            )
            conversation.add_message(message)
            self._sends_in_flight[contact] = self._sends_in_flight.get(contact, 0) + 1
            self.on_send(message, conversation)
        self._notify(conversation)

        try:
            timestamp = self._transport.send(contact.number, text)
        except TransportError as exc:
            with self._lock:
                message.is_failed = True
                self._finish_send(contact)
            logger.warning("Send to %s failed: %s", contact.number, exc)
            raise

        with self._lock:
            sent = conversation.rekey(local_key, timestamp)
            early = self._early_receipts.pop((contact, timestamp), None)
            if sent is not None and early is not None:
                sent.is_delivered, sent.is_read = early
            self._finish_send(contact)
        self._notify(conversation, status_only=True)
        return timestamp

    def _finish_send(self, contact: Contact) -> None:
        remaining = self._sends_in_flight.get(contact, 0) - 1
        if remaining > 0:
            self._sends_in_flight[contact] = remaining
            return
        self._sends_in_flight.pop(contact, None)
        for key in [k for k in self._early_receipts if k[0] == contact]:
            del self._early_receipts[key]

    def mark_seen(self, contact: Contact) -> None:
        """Clear the new-message flag on contact's conversation."""
        with self._lock:
            self.resolve_conversation(self.resolve_contact(contact.number)).mark_seen()

    def receive(self) -> None:
        """Pump the transport; inbound events come back through on_received/on_receipt."""
        self._transport.receive()
