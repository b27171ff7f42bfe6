from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


@dataclass(slots=True)
class ReplyRecord:
    """Outgoing reply placed in an existing thread."""

    to: str
    subject: str
    body: str
    thread_id: str
    sender: Optional[str] = None


class OutcomeStatus(str, Enum):
    REPLIED = "replied"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(slots=True)
class CandidateOutcome:
    message_id: str
    thread_id: str
    status: OutcomeStatus
    reply_id: Optional[str] = None
    detail: str = ""


@dataclass(slots=True)
class ScanReport:
    """Result of one pass over the unread candidates."""

    started_at: datetime
    query: str
    outcomes: List[CandidateOutcome] = field(default_factory=list)
    error: Optional[str] = None

    def _count(self, status: OutcomeStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status is status)

    @property
    def replied(self) -> int:
        return self._count(OutcomeStatus.REPLIED)

    @property
    def skipped(self) -> int:
        return self._count(OutcomeStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(OutcomeStatus.FAILED)
