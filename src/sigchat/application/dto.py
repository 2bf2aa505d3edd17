"""Inbound transport events and session settings. Core has no signal-cli dependency."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ReceivedEvent:
    """A text message that arrived from a remote party."""

    source: str
    message: str
    timestamp: int


@dataclass(frozen=True)
class ReceiptEvent:
    """Delivery/read receipt covering one or more messages, keyed by their timestamps."""

    source: str
    is_delivery: bool = False
    is_read: bool = False
    timestamps: tuple[int, ...] = field(default=())


@dataclass(frozen=True)
class SessionConfig:
    """Local user identity for one session."""

    user_number: str
    user_name: str = "me"
    signal_cli_binary: str = "signal-cli"

    def __post_init__(self):
        if not self.user_number or not self.user_number.strip():
            raise ValueError("SessionConfig user_number must be non-empty.")
