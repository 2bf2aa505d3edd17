"""Tests for the signal-cli transport. No signal-cli needed: subprocess is replaced or a stand-in script runs."""

import io
import json
import subprocess
import sys
import threading

import pytest

from sigchat.application import ReceiptEvent, ReceivedEvent, TransportError
from sigchat.infrastructure import signal_cli
from sigchat.infrastructure.signal_cli import (
    SignalCliTransport,
    parse_envelope,
    parse_send_timestamp,
)

USER = "+12025550100"


def _line(envelope: dict) -> str:
    return json.dumps({"envelope": envelope}) + "\n"


def _data_line(source: str, text: str, ts: int) -> str:
    return _line(
        {"source": source, "timestamp": ts, "dataMessage": {"timestamp": ts, "message": text}}
    )


def _receipt_line(source: str, delivered: bool, read: bool, timestamps) -> str:
    return _line(
        {
            "source": source,
            "timestamp": 1,
            "receiptMessage": {
                "when": 1,
                "isDelivery": delivered,
                "isRead": read,
                "timestamps": timestamps,
            },
        }
    )


class _FakePopen:
    """Stands in for subprocess.Popen with canned stdout/stderr."""

    def __init__(self, stdout: str, returncode: int = 0, stderr: str = "") -> None:
        self.args = None
        self.stdout = io.StringIO(stdout)
        self.stderr = io.StringIO(stderr)
        self._returncode = returncode

    def __call__(self, args, **kwargs):
        self.args = args
        return self

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def wait(self) -> int:
        return self._returncode


def test_parse_data_message() -> None:
    event = parse_envelope(_data_line("+1555", "hi", 100))
    assert event == ReceivedEvent(source="+1555", message="hi", timestamp=100)


def test_parse_receipt_message() -> None:
    event = parse_envelope(_receipt_line("+1555", True, False, [100, 101]))
    assert event == ReceiptEvent(
        source="+1555", is_delivery=True, is_read=False, timestamps=(100, 101)
    )


def test_parse_falls_back_to_source_number() -> None:
    line = _line({"sourceNumber": "+1555", "dataMessage": {"timestamp": 7, "message": "x"}})
    assert parse_envelope(line) == ReceivedEvent(source="+1555", message="x", timestamp=7)


def test_parse_skips_uninteresting_lines() -> None:
    assert parse_envelope("") is None
    assert parse_envelope("not json") is None
    assert parse_envelope(json.dumps([1, 2])) is None
    assert parse_envelope(_line({"source": "+1555", "typingMessage": {"action": "STARTED"}})) is None
    assert parse_envelope(_line({"source": "+1555", "dataMessage": {"timestamp": 3}})) is None
    assert parse_envelope(_line({"dataMessage": {"timestamp": 3, "message": "x"}})) is None
    assert parse_envelope(
        _line({"source": "+1555", "dataMessage": {"timestamp": "x", "message": "hi"}})
    ) is None
    assert parse_envelope(_receipt_line("+1555", True, False, ["abc"])) is None
    assert parse_envelope(_receipt_line("+1555", True, False, 5)) is None


def test_parse_send_timestamp() -> None:
    assert parse_send_timestamp("1612345678901\n") == 1612345678901
    assert parse_send_timestamp("INFO something\n1612345678901\n") == 1612345678901
    assert parse_send_timestamp("") is None
    assert parse_send_timestamp("sent\n") is None


def test_send_runs_signal_cli_and_returns_timestamp(monkeypatch) -> None:
    calls = []

    def fake_run(args, **kwargs):
        calls.append(args)
        return subprocess.CompletedProcess(args, 0, stdout="1612345678901\n", stderr="")

    monkeypatch.setattr(signal_cli.subprocess, "run", fake_run)
    transport = SignalCliTransport(USER)

    assert transport.send("+1555", "hello") == 1612345678901
    assert calls == [["signal-cli", "-u", USER, "send", "-m", "hello", "+1555"]]


def test_send_without_printed_timestamp_uses_clock(monkeypatch) -> None:
    monkeypatch.setattr(
        signal_cli.subprocess,
        "run",
        lambda args, **kwargs: subprocess.CompletedProcess(args, 0, stdout="", stderr=""),
    )
    monkeypatch.setattr(signal_cli.time, "time", lambda: 1700000000.5)
    assert SignalCliTransport(USER).send("+1555", "hello") == 1700000000500


def test_send_nonzero_exit_raises_transport_error(monkeypatch) -> None:
    monkeypatch.setattr(
        signal_cli.subprocess,
        "run",
        lambda args, **kwargs: subprocess.CompletedProcess(
            args, 1, stdout="", stderr="User is not registered."
        ),
    )
    with pytest.raises(TransportError, match="not registered"):
        SignalCliTransport(USER).send("+1555", "hello")


def test_send_missing_binary_raises_transport_error(monkeypatch) -> None:
    def fake_run(args, **kwargs):
        raise FileNotFoundError(args[0])

    monkeypatch.setattr(signal_cli.subprocess, "run", fake_run)
    with pytest.raises(TransportError, match="cannot run"):
        SignalCliTransport(USER, binary="/nope/signal-cli").send("+1555", "hello")


def test_receive_dispatches_events_to_callbacks(monkeypatch) -> None:
    fake = _FakePopen(
        _data_line("+1555", "hi", 100)
        + "garbage\n"
        + _receipt_line("+1555", True, True, [100])
    )
    monkeypatch.setattr(signal_cli.subprocess, "Popen", fake)
    transport = SignalCliTransport(USER)
    received: list[ReceivedEvent] = []
    receipts: list[ReceiptEvent] = []
    transport.on_received(received.append)
    transport.on_receipt(receipts.append)

    transport.receive()

    assert fake.args == ["signal-cli", "-u", USER, "receive", "--json"]
    assert received == [ReceivedEvent(source="+1555", message="hi", timestamp=100)]
    assert receipts == [
        ReceiptEvent(source="+1555", is_delivery=True, is_read=True, timestamps=(100,))
    ]


def test_receive_follow_uses_daemon(monkeypatch) -> None:
    fake = _FakePopen("")
    monkeypatch.setattr(signal_cli.subprocess, "Popen", fake)
    SignalCliTransport(USER, follow=True).receive()
    assert fake.args == ["signal-cli", "-u", USER, "daemon", "--json"]


def test_receive_nonzero_exit_raises_after_dispatch(monkeypatch) -> None:
    fake = _FakePopen(_data_line("+1555", "hi", 100), returncode=3, stderr="socket closed")
    monkeypatch.setattr(signal_cli.subprocess, "Popen", fake)
    transport = SignalCliTransport(USER)
    received: list[ReceivedEvent] = []
    transport.on_received(received.append)

    with pytest.raises(TransportError, match="socket closed"):
        transport.receive()
    assert len(received) == 1


def test_receive_without_callbacks_is_harmless(monkeypatch) -> None:
    monkeypatch.setattr(signal_cli.subprocess, "Popen", _FakePopen(_data_line("+1555", "hi", 1)))
    SignalCliTransport(USER).receive()


def test_receive_skips_malformed_envelope_and_continues(monkeypatch) -> None:
    bad = _line({"source": "+1555", "dataMessage": {"timestamp": "x", "message": "bad"}})
    fake = _FakePopen(bad + _data_line("+1555", "good", 101))
    monkeypatch.setattr(signal_cli.subprocess, "Popen", fake)
    transport = SignalCliTransport(USER)
    received: list[ReceivedEvent] = []
    transport.on_received(received.append)

    transport.receive()

    assert received == [ReceivedEvent(source="+1555", message="good", timestamp=101)]


def _fake_cli(tmp_path, body: str) -> str:
    script = tmp_path / "signal-cli"
    script.write_text(f"#!{sys.executable}\nimport sys\n{body}\n")
    script.chmod(0o755)
    return str(script)


def test_receive_is_not_blocked_by_noisy_stderr(tmp_path) -> None:
    line = _data_line("+1555", "hi", 100).strip()
    binary = _fake_cli(
        tmp_path,
        "for _ in range(4000):\n"
        "    sys.stderr.write('INFO ' + 'x' * 60 + '\\n')\n"
        "sys.stderr.flush()\n"
        f"print({line!r}, flush=True)\n",
    )
    transport = SignalCliTransport(USER, binary=binary)
    received: list[ReceivedEvent] = []
    transport.on_received(received.append)

    worker = threading.Thread(target=transport.receive, daemon=True)
    worker.start()
    worker.join(timeout=10)

    assert not worker.is_alive()
    assert received == [ReceivedEvent(source="+1555", message="hi", timestamp=100)]


def test_receive_error_reports_stderr_tail(tmp_path) -> None:
    binary = _fake_cli(
        tmp_path,
        "for i in range(100):\n"
        "    sys.stderr.write(f'noise {i}\\n')\n"
        "sys.stderr.write('socket closed\\n')\n"
        "sys.exit(3)\n",
    )
    with pytest.raises(TransportError, match="socket closed") as excinfo:
        SignalCliTransport(USER, binary=binary).receive()
    assert "noise 0" not in str(excinfo.value)
