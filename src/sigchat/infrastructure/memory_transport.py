"""In-memory implementation of MessagingTransport (no daemon). Used by tests."""

from collections import deque
from collections.abc import Callable

from sigchat.application.dto import ReceiptEvent, ReceivedEvent
from sigchat.application.errors import TransportError
from sigchat.application.ports import ReceiptCallback, ReceivedCallback


class InMemoryTransport:
    """Records sent messages and replays queued inbound events on receive().

    Timestamps for sent messages come from `clock`, which defaults to a counter
    starting at 1000.
    """

    def __init__(self, clock: Callable[[], int] | None = None) -> None:
        self.sent: list[tuple[str, str]] = []
        self._pending: deque[ReceivedEvent | ReceiptEvent] = deque()
        self._received_callback: ReceivedCallback | None = None
        self._receipt_callback: ReceiptCallback | None = None
        self._fail_with: str | None = None
        self._counter = 1000
        self._clock = clock or self._next_counter

    def _next_counter(self) -> int:
        self._counter += 1
        return self._counter

    def on_received(self, callback: ReceivedCallback) -> None:
        self._received_callback = callback

    def on_receipt(self, callback: ReceiptCallback) -> None:
        self._receipt_callback = callback

    def fail_next_send(self, reason: str = "send failed") -> None:
        self._fail_with = reason

    def send(self, number: str, text: str) -> int:
        if self._fail_with is not None:
            reason, self._fail_with = self._fail_with, None
            raise TransportError(reason)
        self.sent.append((number, text))
        return self._clock()

    def queue(self, event: ReceivedEvent | ReceiptEvent) -> None:
        """Hold an event until the next receive()."""
        self._pending.append(event)

    def deliver(self, event: ReceivedEvent | ReceiptEvent) -> None:
        """Dispatch an event to the registered callback right away."""
        if isinstance(event, ReceivedEvent):
            if self._received_callback is not None:
                self._received_callback(event)
        elif self._receipt_callback is not None:
            self._receipt_callback(event)

    def receive(self) -> None:
        while self._pending:
            self.deliver(self._pending.popleft())
