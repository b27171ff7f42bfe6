from __future__ import annotations

import logging
from typing import Optional, Sequence

from models.email_message import CandidateMessage, ThreadSnapshot
from services.strategies import NotFromSelfStrategy, ReplyStrategy, UnrepliedThreadStrategy

LOGGER = logging.getLogger(__name__)


class ReplyDecisionEngine:
    """Decide whether a candidate message gets an automated reply.

    Strategies run in order and the first veto wins, so cheap checks that
    do not need the latest-message headers go first.
    """

    def __init__(self, strategies: Optional[Sequence[ReplyStrategy]] = None):
        self._strategies = list(strategies) if strategies is not None else default_strategies()

    def should_reply(self, thread: ThreadSnapshot, candidate: CandidateMessage) -> bool:
        if not thread.messages:
            LOGGER.warning("Thread %s for message %s is empty", thread.id, candidate.id)
            return False
        for strategy in self._strategies:
            if not strategy.allows_reply(thread, candidate):
                LOGGER.debug("%s vetoed reply to %s", type(strategy).__name__, candidate.id)
                return False
        return True


def default_strategies() -> list[ReplyStrategy]:
    return [UnrepliedThreadStrategy(), NotFromSelfStrategy()]
