from __future__ import annotations

import base64
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from utils.exceptions import ConfigurationError

DEFAULT_SEARCH_QUERY = "in:inbox is:unread category:primary"
DEFAULT_REPLY_BODY = "thankyou revert as soon as possible."
DEFAULT_REPLY_LABEL = "Auto Reply"


@dataclass(slots=True)
class AppConfig:
    credentials_file: Path
    token_file: Path
    user_id: str
    log_dir: Path
    log_level: str
    poll_interval_seconds: int
    lookback_seconds: int
    search_query: str
    reply_body: str
    reply_label: str
    reply_from: Optional[str] = None


def _resolve_path(value: str | None, fallback: str) -> Path:
    candidate = Path(value or fallback)
    if not candidate.is_absolute():
        candidate = Path.cwd() / candidate
    return candidate


def _positive_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


def _maybe_write_secret_file(target: Path, inline_value: str | None, b64_value: str | None) -> None:
    if not inline_value and not b64_value:
        return
    target.parent.mkdir(parents=True, exist_ok=True)
    if inline_value:
        target.write_text(inline_value, encoding="utf-8")
        return
    try:
        decoded = base64.b64decode(b64_value or "", validate=True)
    except ValueError as exc:
        raise ConfigurationError(f"Failed to decode base64 secret payload for {target.name}") from exc
    target.write_bytes(decoded)


def load_config(env_file: str | os.PathLike[str] | None = None) -> AppConfig:
    """Load configuration values from a .env file and environment variables."""

    if env_file:
        load_dotenv(env_file, override=False)
    else:
        load_dotenv(override=False)

    credentials_file = _resolve_path(os.getenv("GOOGLE_CLIENT_SECRETS"), "credentials.json")
    token_file = _resolve_path(os.getenv("GOOGLE_TOKEN_PATH"), "token.json")
    log_dir = _resolve_path(os.getenv("LOG_DIR"), "logs")

    _maybe_write_secret_file(
        credentials_file,
        os.getenv("GOOGLE_CLIENT_SECRETS_JSON"),
        os.getenv("GOOGLE_CLIENT_SECRETS_B64"),
    )
    _maybe_write_secret_file(
        token_file,
        os.getenv("GOOGLE_TOKEN_JSON"),
        os.getenv("GOOGLE_TOKEN_B64"),
    )

    return AppConfig(
        credentials_file=credentials_file,
        token_file=token_file,
        user_id=os.getenv("GMAIL_USER_ID", "me"),
        log_dir=log_dir,
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        poll_interval_seconds=_positive_int("POLL_INTERVAL_SECONDS", 10),
        lookback_seconds=_positive_int("LOOKBACK_SECONDS", 60),
        search_query=os.getenv("GMAIL_SEARCH_QUERY") or DEFAULT_SEARCH_QUERY,
        reply_body=os.getenv("AUTO_REPLY_BODY") or DEFAULT_REPLY_BODY,
        reply_label=os.getenv("AUTO_REPLY_LABEL") or DEFAULT_REPLY_LABEL,
        reply_from=os.getenv("AUTO_REPLY_FROM") or None,
    )
