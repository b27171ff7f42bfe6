from __future__ import annotations

from abc import ABC, abstractmethod

from models.email_message import CandidateMessage, ThreadSnapshot


class ReplyStrategy(ABC):
    """Strategy interface for vetoing an automated reply."""

    @abstractmethod
    def allows_reply(self, thread: ThreadSnapshot, candidate: CandidateMessage) -> bool:
        """Return False when the thread must not receive an automated reply."""
        raise NotImplementedError
