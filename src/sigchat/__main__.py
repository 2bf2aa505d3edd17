"""
Headless runner: signal-cli + Session, logging each conversation update.
Run: python -m sigchat (with .env or SIGCHAT_* env vars set).
"""
import logging

from sigchat.application import ConfigError, TransportError
from sigchat.domain import Conversation
from sigchat.infrastructure import build_session, load_config

logger = logging.getLogger(__name__)


def log_update(conversation: Conversation) -> None:
    order = conversation.order
    if not order:
        return
    latest = conversation.messages[order[-1]]
    logger.info("[%s] %s", conversation.contact.display_name, str(latest).rstrip("\n"))


def main() -> int:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.INFO,
    )
    try:
        config = load_config()
    except ConfigError as exc:
        logger.error("%s", exc)
        return 2
    session = build_session(config, follow=True)
    session.add_observer(log_update, notify_on_receipts=True)
    try:
        session.receive()
    except TransportError as exc:
        logger.error("%s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Stopped.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
