from __future__ import annotations

import logging
import math
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Set

import schedule
from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

from models.email_message import CandidateMessage
from models.reply import CandidateOutcome, OutcomeStatus, ReplyRecord, ScanReport
from services.auth_service import CredentialStore
from services.gmail_service import GmailService
from services.reply_decision import ReplyDecisionEngine
from utils.config import AppConfig

LOGGER = logging.getLogger(__name__)


class PollState(Enum):
    IDLE = "idle"
    SCANNING = "scanning"


class AutoResponder:
    """Poll for unread mail and answer the first message of unanswered threads.

    Each candidate is handled inside its own failure boundary, so a message
    with broken headers or a transient API error only costs that message.
    Threads answered during this process run are remembered and never
    answered twice.
    """

    def __init__(
        self,
        config: AppConfig,
        gmail: GmailService,
        engine: ReplyDecisionEngine,
        credential_store: Optional[CredentialStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._config = config
        self._gmail = gmail
        self._engine = engine
        self._credential_store = credential_store
        self._clock = clock
        self._replied_threads: Set[str] = set()
        self.state = PollState.IDLE

    @property
    def gmail(self) -> GmailService:
        return self._gmail

    def build_query(self, now: float | None = None) -> str:
        now = self._clock() if now is None else now
        after = math.floor(now - self._config.lookback_seconds)
        return f"{self._config.search_query} after:{after}"

    def scan(self) -> Optional[ScanReport]:
        if self.state is PollState.SCANNING:
            LOGGER.warning("Previous scan still running, skipping this tick")
            return None

        self.state = PollState.SCANNING
        try:
            return self._scan()
        finally:
            self.state = PollState.IDLE

    def _scan(self) -> ScanReport:
        LOGGER.info("Scanning for new emails...")
        query = self.build_query()
        report = ScanReport(started_at=datetime.now(timezone.utc), query=query)
        try:
            candidates = self._gmail.list_candidates(query)
        except RefreshError as exc:
            LOGGER.error("Gmail rejected the cached credential: %s", exc)
            report.error = str(exc)
            self._reload_credentials()
            return report
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Error occurred while listing messages")
            report.error = str(exc)
            return report

        if not candidates:
            LOGGER.info("No new emails")
            return report

        LOGGER.info("Found %s unread messages", len(candidates))
        for candidate in candidates:
            try:
                outcome = self.process_candidate(candidate)
            except Exception as exc:  # noqa: BLE001
                LOGGER.exception("Failed to process message %s", candidate.id)
                outcome = CandidateOutcome(
                    message_id=candidate.id,
                    thread_id=candidate.thread_id,
                    status=OutcomeStatus.FAILED,
                    detail=str(exc),
                )
            report.outcomes.append(outcome)

        LOGGER.info(
            "Scan finished: %s replied, %s skipped, %s failed",
            report.replied,
            report.skipped,
            report.failed,
        )
        return report

    def process_candidate(self, candidate: CandidateMessage) -> CandidateOutcome:
        metadata = self._gmail.fetch_message_metadata(candidate.id)
        thread_id = metadata.thread_id or candidate.thread_id
        thread = self._gmail.fetch_thread(thread_id)

        if thread.id in self._replied_threads:
            LOGGER.info("Skipping email with message ID %s, thread already answered", candidate.id)
            return self._skipped(candidate, thread.id, "already replied during this run")

        if not self._engine.should_reply(thread, candidate):
            LOGGER.info("Skipping email with message ID %s", candidate.id)
            return self._skipped(candidate, thread.id, "thread already has a reply")

        latest = thread.latest_message()
        LOGGER.info("Replying to email with message ID %s", candidate.id)
        reply = ReplyRecord(
            to=latest.sender,
            subject=latest.subject,
            body=self._config.reply_body,
            thread_id=thread.id,
            sender=self._config.reply_from,
        )
        reply_id = self._gmail.send_message(reply)
        self._replied_threads.add(thread.id)
        LOGGER.info("Replied to email with message ID %s with Reply ID %s", candidate.id, reply_id)

        try:
            self._label_reply(reply_id)
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Reply %s was sent but could not be labelled", reply_id)
            return CandidateOutcome(
                message_id=candidate.id,
                thread_id=thread.id,
                status=OutcomeStatus.FAILED,
                reply_id=reply_id,
                detail=f"replied to {latest.sender} but labelling failed: {exc}",
            )
        return CandidateOutcome(
            message_id=candidate.id,
            thread_id=thread.id,
            status=OutcomeStatus.REPLIED,
            reply_id=reply_id,
            detail=f"replied to {latest.sender}",
        )

    def _label_reply(self, reply_id: str) -> None:
        label_name = self._config.reply_label
        label_id = self._gmail.ensure_label(label_name)
        try:
            self._gmail.apply_label(reply_id, label_id)
        except HttpError as exc:
            # 400/404: the cached label was deleted or renamed in Gmail
            if exc.resp.status not in (400, 404):
                raise
            LOGGER.warning("Label %s (%s) was rejected, resolving it again", label_name, label_id)
            self._gmail.forget_label(label_name)
            self._gmail.apply_label(reply_id, self._gmail.ensure_label(label_name))

    def schedule_job(self, scheduler: schedule.Scheduler) -> schedule.Job:
        return scheduler.every(self._config.poll_interval_seconds).seconds.do(self.scan)

    def run_forever(self, scheduler: Optional[schedule.Scheduler] = None) -> None:
        """Run scans until interrupted.

        ``schedule`` computes the next run only after a job returns, so a
        slow scan delays the next one instead of overlapping it.
        """

        scheduler = scheduler or schedule.Scheduler()
        self.schedule_job(scheduler)
        LOGGER.info(
            "Polling every %s second(s) with a %s second lookback",
            self._config.poll_interval_seconds,
            self._config.lookback_seconds,
        )
        try:
            while True:
                scheduler.run_pending()
                time.sleep(1)
        except KeyboardInterrupt:
            LOGGER.info("Poll loop stopped")
        finally:
            scheduler.clear()

    def _reload_credentials(self) -> None:
        if self._credential_store is None:
            return
        creds = self._credential_store.reload()
        if creds is None:
            LOGGER.error("No usable token at %s; run the authorize command", self._credential_store.token_file)
            return
        self._gmail.reload_credentials(creds)

    @staticmethod
    def _skipped(candidate: CandidateMessage, thread_id: str, detail: str) -> CandidateOutcome:
        return CandidateOutcome(
            message_id=candidate.id,
            thread_id=thread_id,
            status=OutcomeStatus.SKIPPED,
            detail=detail,
        )
