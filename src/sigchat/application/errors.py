"""Errors surfaced by the session and its adapters."""


class SigchatError(Exception):
    """Base class for sigchat errors."""


class TransportError(SigchatError):
    """The messaging transport failed to send or receive."""


class ConfigError(SigchatError):
    """Required configuration is missing or invalid."""
