from __future__ import annotations

import logging

from models.email_message import CandidateMessage, ThreadSnapshot

from .base import ReplyStrategy

LOGGER = logging.getLogger(__name__)


class UnrepliedThreadStrategy(ReplyStrategy):
    """Only threads that still consist of a single message get a reply.

    Any second message is taken to mean somebody already answered.
    """

    def allows_reply(self, thread: ThreadSnapshot, candidate: CandidateMessage) -> bool:
        if len(thread) > 1:
            LOGGER.debug("Thread %s already has %s messages", thread.id, len(thread))
            return False
        return True
