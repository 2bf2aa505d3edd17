"""MessagingTransport backed by the external `signal-cli` executable."""

import json
import logging
import subprocess
import threading
import time
from collections import deque
from collections.abc import Sequence

from sigchat.application.dto import ReceiptEvent, ReceivedEvent
from sigchat.application.errors import TransportError
from sigchat.application.ports import ReceiptCallback, ReceivedCallback

logger = logging.getLogger(__name__)

RECEIVE_ARGS = ("receive", "--json")
FOLLOW_ARGS = ("daemon", "--json")
STDERR_TAIL_LINES = 20


def _envelope_source(envelope: dict) -> str | None:
    for key in ("source", "sourceNumber", "sourceUuid"):
        value = envelope.get(key)
        if value:
            return str(value)
    return None


def parse_envelope(line: str) -> ReceivedEvent | ReceiptEvent | None:
    """Turn one line of signal-cli JSON output into an event.

    Returns None for anything that is neither a text message nor a receipt
    (sync and typing messages, empty data messages, malformed lines).
    """
    line = (line or "").strip()
    if not line:
        return None
    try:
        payload = json.loads(line)
    except json.JSONDecodeError:
        logger.debug("Skipping non-JSON line from signal-cli: %r", line)
        return None
    envelope = payload.get("envelope") if isinstance(payload, dict) else None
    if not isinstance(envelope, dict):
        return None
    source = _envelope_source(envelope)
    if source is None:
        return None

    data = envelope.get("dataMessage")
    receipt = envelope.get("receiptMessage")
    try:
        if isinstance(data, dict) and data.get("message"):
            timestamp = data.get("timestamp") or envelope.get("timestamp")
            if timestamp is None:
                return None
            return ReceivedEvent(
                source=source, message=str(data["message"]), timestamp=int(timestamp)
            )
        if isinstance(receipt, dict):
            return ReceiptEvent(
                source=source,
                is_delivery=bool(receipt.get("isDelivery")),
                is_read=bool(receipt.get("isRead")),
                timestamps=tuple(int(ts) for ts in receipt.get("timestamps") or ()),
            )
    except (TypeError, ValueError) as exc:
        logger.debug("Skipping malformed envelope from %s: %s", source, exc)
        return None

    logger.debug("Skipping envelope from %s with no text or receipt", source)
    return None


def parse_send_timestamp(output: str) -> int | None:
    """signal-cli prints the sent message's timestamp; return the last integer line, if any."""
    for line in reversed((output or "").splitlines()):
        line = line.strip()
        if line.isdigit():
            return int(line)
    return None


class SignalCliTransport:
    """Bridge `signal-cli` subprocesses into ReceivedEvent/ReceiptEvent callbacks."""

    def __init__(
        self,
        user_number: str,
        binary: str = "signal-cli",
        *,
        follow: bool = False,
        receive_args: Sequence[str] | None = None,
    ) -> None:
        self._user_number = user_number
        self._binary = binary
        self._receive_args = tuple(receive_args or (FOLLOW_ARGS if follow else RECEIVE_ARGS))
        self._received_callback: ReceivedCallback | None = None
        self._receipt_callback: ReceiptCallback | None = None

    def _command(self, *args: str) -> list[str]:
        return [self._binary, "-u", self._user_number, *args]

    def on_received(self, callback: ReceivedCallback) -> None:
        self._received_callback = callback

    def on_receipt(self, callback: ReceiptCallback) -> None:
        self._receipt_callback = callback

    def send(self, number: str, text: str) -> int:
        try:
            completed = subprocess.run(
                self._command("send", "-m", text, number),
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            raise TransportError(f"cannot run {self._binary}: {exc}") from exc
        if completed.returncode != 0:
            detail = (completed.stderr or completed.stdout or "").strip() or "unknown error"
            raise TransportError(f"signal-cli send failed ({completed.returncode}): {detail}")
        timestamp = parse_send_timestamp(completed.stdout)
        if timestamp is None:
            logger.debug("signal-cli send printed no timestamp; using local clock")
            timestamp = int(time.time() * 1000)
        return timestamp

    def dispatch(self, line: str) -> None:
        """Parse one output line and hand the event to the matching callback."""
        event = parse_envelope(line)
        if isinstance(event, ReceivedEvent):
            if self._received_callback is not None:
                self._received_callback(event)
        elif isinstance(event, ReceiptEvent):
            if self._receipt_callback is not None:
                self._receipt_callback(event)

    def receive(self) -> None:
        try:
            process = subprocess.Popen(
                self._command(*self._receive_args),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
            )
        except OSError as exc:
            raise TransportError(f"cannot run {self._binary}: {exc}") from exc
        # stderr is drained on its own thread; a full pipe would stall stdout.
        stderr_tail: deque[str] = deque(maxlen=STDERR_TAIL_LINES)
        stderr_thread = threading.Thread(
            target=_drain_stderr, args=(process.stderr, stderr_tail), daemon=True
        )
        with process:
            stderr_thread.start()
            for line in process.stdout:
                self.dispatch(line)
            returncode = process.wait()
            stderr_thread.join()
        if returncode != 0:
            detail = "\n".join(stderr_tail).strip() or "unknown error"
            raise TransportError(f"signal-cli receive failed ({returncode}): {detail}")


def _drain_stderr(stream, tail: deque[str]) -> None:
    for line in stream:
        line = line.rstrip("\n")
        if line:
            logger.debug("signal-cli: %s", line)
            tail.append(line)
