"""Exceptions raised by the auto-reply service."""

from __future__ import annotations


class AutoReplyError(Exception):
    """Base exception for auto-reply errors."""


class ConfigurationError(AutoReplyError):
    """Raised when the OAuth client file or a configuration value is unusable."""


class MessageFormatError(AutoReplyError):
    """Raised when a Gmail message or thread lacks data we rely on."""

    def __init__(self, message_id: str | None, detail: str):
        self.message_id = message_id
        super().__init__(f"{detail} (message {message_id or 'unknown'})")
