"""Domain entities: Contact, Message, and Conversation."""

from dataclasses import dataclass, field

DELIVERY_GLYPHS = {True: "<", False: "?"}
READ_GLYPHS = {True: ">", False: "?"}


@dataclass(frozen=True)
class Contact:
    """
    A remote party, identified by its number (phone number or Signal identifier).
    Two contacts with the same number are the same contact; the name is not part of identity.
    """

    number: str
    name: str = field(default="", compare=False)

    def __post_init__(self):
        if not self.number or not self.number.strip():
            raise ValueError("Contact number must be non-empty.")

    @property
    def display_name(self) -> str:
        """Name on file, or the raw number when there is none."""
        return self.name or self.number


@dataclass
class Message:
    """
    One text exchange. Content is fixed at creation; delivery and read
    status are updated in place as receipts arrive.
    """

    content: str
    sender: str
    timestamp: int
    is_delivered: bool = False
    is_read: bool = False
    is_failed: bool = False

    def __str__(self) -> str:
        return (
            f"{self.timestamp}|{DELIVERY_GLYPHS[self.is_delivered]}"
            f"{READ_GLYPHS[self.is_read]} {self.sender}: {self.content}\n"
        )


@dataclass
class Conversation:
    """
    Messages exchanged with one contact, keyed by timestamp.
    `order` keeps every key exactly once, in first-insertion order (not sorted).
    """

    contact: Contact
    messages: dict[int, Message] = field(default_factory=dict)
    order: list[int] = field(default_factory=list)
    has_new_message: bool = False

    def add_message(self, message: Message) -> None:
        """Insert a message, or fully replace the one stored under the same timestamp."""
        is_new = message.timestamp not in self.messages
        self.messages[message.timestamp] = message
        if is_new:
            self.order.append(message.timestamp)
            self.has_new_message = True

    def get(self, timestamp: int) -> Message | None:
        return self.messages.get(timestamp)

    def rekey(self, old: int, new: int) -> Message | None:
        """Move the message stored under `old` to `new`, keeping its display position.

        If `new` is already present the entry under `old` is dropped and the
        existing one stays where it is. Returns the message now stored under `new`,
        or None if `old` was unknown.
        """
        message = self.messages.pop(old, None)
        if message is None:
            return self.messages.get(new)
        if new in self.messages:
            self.order.remove(old)
            return self.messages[new]
        message.timestamp = new
        self.messages[new] = message
        self.order[self.order.index(old)] = new
        return message

    def mark_seen(self) -> None:
        self.has_new_message = False

    def __len__(self) -> int:
        return len(self.messages)

    def __str__(self) -> str:
        return "".join(str(self.messages[ts]) for ts in self.order)
