from __future__ import annotations

import logging

from models.email_message import CandidateMessage, ThreadSnapshot

from .base import ReplyStrategy

LOGGER = logging.getLogger(__name__)


class NotFromSelfStrategy(ReplyStrategy):
    """Never answer a thread whose latest message we sent ourselves."""

    def allows_reply(self, thread: ThreadSnapshot, candidate: CandidateMessage) -> bool:
        latest = thread.latest_message()
        if latest.from_me:
            LOGGER.debug("Latest message %s in thread %s is our own", latest.id, thread.id)
            return False
        return True
