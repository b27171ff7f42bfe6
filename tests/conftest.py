from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

import httplib2
import pytest
from googleapiclient.errors import HttpError

import services.gmail_service as gmail_module
from utils.config import AppConfig


class _Request:
    def __init__(self, fake: "FakeGmail", name: str, kwargs: Dict[str, Any]):
        self._fake = fake
        self._name = name
        self._kwargs = kwargs

    def execute(self) -> Dict[str, Any]:
        self._fake.calls.append((self._name, self._kwargs))
        handler = getattr(self._fake, "_handle_" + self._name.replace(".", "_"))
        return handler(**self._kwargs)


class _Resource:
    def __init__(self, fake: "FakeGmail", prefix: str):
        self._fake = fake
        self._prefix = prefix

    def __getattr__(self, method: str):
        def call(**kwargs: Any) -> _Request:
            return _Request(self._fake, f"{self._prefix}.{method}", kwargs)

        return call


class FakeGmail:
    """In-memory stand-in for the discovery-built Gmail client."""

    def __init__(self) -> None:
        self.listed: List[Dict[str, str]] = []
        self.thread_store: Dict[str, List[Dict[str, Any]]] = {}
        self.label_store: List[Dict[str, str]] = [{"id": "INBOX", "name": "INBOX"}]
        self.sent: List[Dict[str, Any]] = []
        self.calls: List[tuple] = []
        self.failures: Dict[str, Exception] = {}
        self.built_with: List[Any] = []
        self._label_seq = 0

    def users(self) -> "FakeGmail":
        return self

    def messages(self) -> _Resource:
        return _Resource(self, "messages")

    def threads(self) -> _Resource:
        return _Resource(self, "threads")

    def labels(self) -> _Resource:
        return _Resource(self, "labels")

    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]

    def add_thread(self, thread_id: str, *messages: Dict[str, Any], unread: str | None = None) -> None:
        self.thread_store[thread_id] = [dict(message, threadId=thread_id) for message in messages]
        if unread:
            self.listed.append({"id": unread, "threadId": thread_id})

    def _fail(self, key: str) -> None:
        if key in self.failures:
            raise self.failures[key]

    def _handle_messages_list(self, userId: str, q: str) -> Dict[str, Any]:
        self._fail("list")
        return {"messages": list(self.listed)} if self.listed else {"resultSizeEstimate": 0}

    def _handle_messages_get(self, userId: str, id: str, **_: Any) -> Dict[str, Any]:
        self._fail(id)
        for thread_id, messages in self.thread_store.items():
            if any(message["id"] == id for message in messages):
                return {"id": id, "threadId": thread_id, "payload": {"headers": []}}
        raise KeyError(id)

    def _handle_threads_get(self, userId: str, id: str, **_: Any) -> Dict[str, Any]:
        return {"id": id, "messages": self.thread_store.get(id, [])}

    def _handle_messages_send(self, userId: str, body: Dict[str, Any]) -> Dict[str, Any]:
        reply_id = f"reply-{len(self.sent) + 1}"
        self.sent.append(dict(body, id=reply_id))
        self.thread_store.setdefault(body["threadId"], []).append(
            {"id": reply_id, "threadId": body["threadId"], "labelIds": ["SENT"], "payload": {"headers": []}}
        )
        return {"id": reply_id, "threadId": body["threadId"], "labelIds": ["SENT"]}

    def _handle_messages_modify(self, userId: str, id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        known = {label["id"] for label in self.label_store}
        unknown = [label_id for label_id in body["addLabelIds"] if label_id not in known]
        if unknown:
            raise HttpError(httplib2.Response({"status": 400}), f"Invalid label: {unknown[0]}".encode())
        return {"id": id, "labelIds": list(body["addLabelIds"])}

    def _handle_labels_list(self, userId: str) -> Dict[str, Any]:
        return {"labels": list(self.label_store)}

    def _handle_labels_create(self, userId: str, body: Dict[str, Any]) -> Dict[str, Any]:
        self._fail("labels.create")
        self._label_seq += 1
        label = dict(body, id=f"Label_{self._label_seq}")
        self.label_store.append(label)
        return label


def make_message(message_id: str, sender: str, subject: str, *, sent: bool = False, to: str = "me@example.com"):
    headers = [
        {"name": "From", "value": sender},
        {"name": "To", "value": to},
        {"name": "Subject", "value": subject},
    ]
    label_ids = ["SENT"] if sent else ["UNREAD", "INBOX", "CATEGORY_PERSONAL"]
    return {"id": message_id, "internalDate": "1700000000000", "labelIds": label_ids, "payload": {"headers": headers}}


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        credentials_file=tmp_path / "credentials.json",
        token_file=tmp_path / "token.json",
        user_id="me",
        log_dir=tmp_path / "logs",
        log_level="DEBUG",
        poll_interval_seconds=10,
        lookback_seconds=60,
        search_query="in:inbox is:unread category:primary",
        reply_body="thankyou revert as soon as possible.",
        reply_label="Auto Reply",
    )


@pytest.fixture
def client_secrets(app_config: AppConfig) -> Path:
    payload = {
        "installed": {
            "client_id": "test-client-id.apps.googleusercontent.com",
            "client_secret": "test-client-secret",
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
            "redirect_uris": ["http://localhost"],
        }
    }
    app_config.credentials_file.write_text(json.dumps(payload), encoding="utf-8")
    return app_config.credentials_file


@pytest.fixture
def fake_gmail(monkeypatch: pytest.MonkeyPatch) -> FakeGmail:
    fake = FakeGmail()
    def fake_build(*args: Any, **kwargs: Any) -> FakeGmail:
        fake.built_with.append(kwargs.get("credentials"))
        return fake

    monkeypatch.setattr(gmail_module, "build", fake_build)
    return fake
