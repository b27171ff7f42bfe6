from __future__ import annotations

import base64
import logging
from email.mime.text import MIMEText
from typing import Any, Dict, List, Sequence

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from models.email_message import CandidateMessage, MessageMetadata, ThreadMessage, ThreadSnapshot
from models.reply import ReplyRecord
from utils.config import AppConfig

LOGGER = logging.getLogger(__name__)

REFERENCE_HEADERS = ["References", "In-Reply-To"]
THREAD_HEADERS = ["From", "To", "Subject", "Date", *REFERENCE_HEADERS]
LABEL_COLOR = {"backgroundColor": "#ffffff", "textColor": "#000000"}


class GmailService:
    """Wrapper around the Gmail API for the operations the auto-responder needs."""

    def __init__(self, config: AppConfig, credentials: Credentials):
        self._config = config
        self._label_cache: Dict[str, str] = {}
        self._client = self._build_client(credentials)

    @property
    def user_id(self) -> str:
        return self._config.user_id

    def reload_credentials(self, credentials: Credentials) -> None:
        LOGGER.info("Rebuilding Gmail client with reloaded credentials")
        self._client = self._build_client(credentials)

    def list_candidates(self, query: str) -> List[CandidateMessage]:
        try:
            response = self._client.users().messages().list(userId=self.user_id, q=query).execute()
        except HttpError as exc:
            LOGGER.error("Failed to list messages for %r: %s", query, exc)
            raise

        messages = response.get("messages") or []
        return [CandidateMessage(id=item["id"], thread_id=item["threadId"]) for item in messages]

    def fetch_message_metadata(self, message_id: str) -> MessageMetadata:
        response = (
            self._client.users()
            .messages()
            .get(userId=self.user_id, id=message_id, format="metadata", metadataHeaders=REFERENCE_HEADERS)
            .execute()
        )
        headers = _headers_to_dict(response.get("payload", {}).get("headers", []))
        return MessageMetadata(id=response["id"], thread_id=response["threadId"], headers=headers)

    def fetch_thread(self, thread_id: str) -> ThreadSnapshot:
        response = (
            self._client.users()
            .threads()
            .get(userId=self.user_id, id=thread_id, format="metadata", metadataHeaders=THREAD_HEADERS)
            .execute()
        )
        messages = [
            ThreadMessage(
                id=item["id"],
                thread_id=item.get("threadId", thread_id),
                headers=_headers_to_dict(item.get("payload", {}).get("headers", [])),
                internal_date=int(item.get("internalDate", 0)),
                label_ids=list(item.get("labelIds", [])),
            )
            for item in response.get("messages", [])
        ]
        LOGGER.debug("Thread %s has %s message(s)", thread_id, len(messages))
        return ThreadSnapshot(id=response.get("id", thread_id), messages=messages)

    def send_message(self, reply: ReplyRecord) -> str:
        body = {"raw": build_raw_message(reply), "threadId": reply.thread_id}
        response = self._client.users().messages().send(userId=self.user_id, body=body).execute()
        LOGGER.debug("Sent message %s in thread %s", response["id"], reply.thread_id)
        return response["id"]

    def ensure_label(self, label_name: str) -> str:
        cached = self._label_cache.get(label_name.lower())
        if cached:
            return cached

        label_id = self._find_label(label_name)
        if label_id is None:
            label_id = self._create_label(label_name)
        self._label_cache[label_name.lower()] = label_id
        return label_id

    def forget_label(self, label_name: str) -> None:
        if self._label_cache.pop(label_name.lower(), None):
            LOGGER.info("Dropped cached id for label %s", label_name)

    def apply_label(self, message_id: str, label_id: str) -> Dict:
        body = {"addLabelIds": [label_id]}
        response = (
            self._client.users()
            .messages()
            .modify(userId=self.user_id, id=message_id, body=body)
            .execute()
        )
        LOGGER.info("Applied label %s to message %s", label_id, message_id)
        return response

    def _find_label(self, label_name: str) -> str | None:
        for label in self._list_labels():
            if label["name"].lower() == label_name.lower():
                LOGGER.debug("Label %s already exists as %s", label_name, label["id"])
                return label["id"]
        return None

    def _create_label(self, label_name: str) -> str:
        body = {
            "name": label_name,
            "labelListVisibility": "labelShow",
            "messageListVisibility": "show",
            "color": dict(LABEL_COLOR),
        }
        try:
            response = self._client.users().labels().create(userId=self.user_id, body=body).execute()
        except HttpError as exc:
            # 409: someone else created it between our list and create calls
            if exc.resp.status != 409:
                raise
            label_id = self._find_label(label_name)
            if label_id is None:
                raise
            return label_id
        LOGGER.info("Created label %s with id %s", label_name, response["id"])
        return response["id"]

    def _list_labels(self) -> List[Dict]:
        response = self._client.users().labels().list(userId=self.user_id).execute()
        return response.get("labels", [])

    @staticmethod
    def _build_client(credentials: Credentials) -> Any:
        return build("gmail", "v1", credentials=credentials, cache_discovery=False)


def build_raw_message(reply: ReplyRecord) -> str:
    """Encode a reply as the URL-safe base64 RFC 2822 payload Gmail expects."""

    message = MIMEText(reply.body, "plain", "utf-8")
    if reply.sender:
        message["From"] = reply.sender
    message["To"] = reply.to
    message["Subject"] = reply.subject
    message["In-Reply-To"] = reply.thread_id
    message["References"] = reply.thread_id
    return base64.urlsafe_b64encode(message.as_bytes()).decode("ascii")


def _headers_to_dict(headers: Sequence[Dict[str, str]]) -> Dict[str, str]:
    mapped: Dict[str, str] = {}
    for header in headers:
        name = header.get("name", "").lower()
        value = header.get("value", "")
        mapped[name] = value
    return mapped
