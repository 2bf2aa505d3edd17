"""Infrastructure layer: concrete transports, phone normalization, and configuration."""

from sigchat.infrastructure.config import build_session, load_config, load_env_file
from sigchat.infrastructure.memory_transport import InMemoryTransport
from sigchat.infrastructure.phone import normalize_identifier, normalize_phone
from sigchat.infrastructure.signal_cli import (
    SignalCliTransport,
    parse_envelope,
    parse_send_timestamp,
)

__all__ = [
    "InMemoryTransport",
    "SignalCliTransport",
    "build_session",
    "load_config",
    "load_env_file",
    "normalize_identifier",
    "normalize_phone",
    "parse_envelope",
    "parse_send_timestamp",
]
