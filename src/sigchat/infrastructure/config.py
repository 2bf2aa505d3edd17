"""Session settings from the environment (.env supported) and production wiring."""

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from dotenv import load_dotenv

from sigchat.application import ConfigError, Session, SessionConfig
from sigchat.domain import Contact
from sigchat.infrastructure.phone import normalize_identifier, normalize_phone
from sigchat.infrastructure.signal_cli import SignalCliTransport

logger = logging.getLogger(__name__)

# Repo root: from src/sigchat/infrastructure/config.py go up four levels
_REPO_ROOT = Path(__file__).resolve().parent.parent.parent.parent

USER_NUMBER_VAR = "SIGCHAT_USER_NUMBER"
USER_NAME_VAR = "SIGCHAT_USER_NAME"
SIGNAL_CLI_VAR = "SIGCHAT_SIGNAL_CLI"


def load_env_file() -> Path | None:
    """Load the first .env found in the repo root or current dir. Returns its path."""
    for path in (_REPO_ROOT / ".env", Path.cwd() / ".env"):
        if path.exists():
            load_dotenv(path)
            return path
    return None


def load_config(*, load_env: bool = True) -> SessionConfig:
    """Build SessionConfig from SIGCHAT_* variables. The user number must be a valid phone number."""
    if load_env:
        load_env_file()
    raw_number = os.environ.get(USER_NUMBER_VAR, "").strip()
    if not raw_number:
        raise ConfigError(f"{USER_NUMBER_VAR} is not set.")
    user_number = normalize_phone(raw_number, default_region=None)
    if user_number is None:
        raise ConfigError(f"{USER_NUMBER_VAR} is not a valid phone number: {raw_number!r}")
    user_name = os.environ.get(USER_NAME_VAR, "").strip() or "me"
    binary = os.environ.get(SIGNAL_CLI_VAR, "").strip() or "signal-cli"
    return SessionConfig(user_number=user_number, user_name=user_name, signal_cli_binary=binary)


def build_session(
    config: SessionConfig | None = None,
    *,
    contacts: Iterable[Contact] = (),
    follow: bool = False,
) -> Session:
    """Session wired to signal-cli for the configured user."""
    config = config or load_config()
    transport = SignalCliTransport(config.user_number, config.signal_cli_binary, follow=follow)
    logger.info("Starting session for %s via %s", config.user_number, config.signal_cli_binary)
    return Session(
        transport,
        config,
        contacts=contacts,
        normalize_identifier=normalize_identifier,
    )
