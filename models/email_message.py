from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List

from utils.exceptions import MessageFormatError

SENT_LABEL = "SENT"


@dataclass(slots=True)
class CandidateMessage:
    """Unread message returned by the poll query."""

    id: str
    thread_id: str


@dataclass(slots=True)
class MessageMetadata:
    id: str
    thread_id: str
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class ThreadMessage:
    """Summary of one message inside a Gmail thread.

    Header names are stored lower-cased.
    """

    id: str
    thread_id: str
    headers: Dict[str, str] = field(default_factory=dict)
    internal_date: int = 0
    label_ids: List[str] = field(default_factory=list)

    @property
    def is_sent(self) -> bool:
        return SENT_LABEL in self.label_ids

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())


@dataclass(slots=True)
class LatestMessageView:
    id: str
    thread_id: str
    sender: str
    recipient: str
    subject: str
    date: datetime
    from_me: bool


@dataclass(slots=True)
class ThreadSnapshot:
    """Ordered messages of a thread, oldest first."""

    id: str
    messages: List[ThreadMessage] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.messages)

    def latest_message(self) -> LatestMessageView:
        if not self.messages:
            raise MessageFormatError(None, f"Thread {self.id} has no messages")
        latest = self.messages[-1]
        sender = latest.header("From")
        if not sender:
            raise MessageFormatError(latest.id, "Missing From header")
        subject = latest.header("Subject")
        if subject is None:
            raise MessageFormatError(latest.id, "Missing Subject header")
        return LatestMessageView(
            id=latest.id,
            thread_id=self.id,
            sender=sender,
            recipient=latest.header("To") or "",
            subject=subject,
            date=datetime.fromtimestamp(latest.internal_date / 1000, tz=timezone.utc),
            from_me=latest.is_sent,
        )
