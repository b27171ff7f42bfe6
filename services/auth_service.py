from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, Tuple

from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from utils.config import AppConfig
from utils.exceptions import ConfigurationError

LOGGER = logging.getLogger(__name__)
SCOPES: Iterable[str] = ("https://www.googleapis.com/auth/gmail.modify",)


class CredentialStore:
    """Handle the OAuth2 token cache for the polled Gmail account.

    The cache holds an ``authorized_user`` record (client id, client secret
    and refresh token). Access tokens are never written; google-auth
    refreshes them on the first request.
    """

    def __init__(self, config: AppConfig):
        self._credentials_file: Path = config.credentials_file
        self._token_file: Path = config.token_file

    @property
    def token_file(self) -> Path:
        return self._token_file

    def load_credential(self) -> Credentials | None:
        token_path = self._token_file
        if not token_path.exists():
            LOGGER.debug("No cached token at %s", token_path)
            return None
        try:
            data = json.loads(token_path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("token cache is not a JSON object")
            return Credentials.from_authorized_user_info(data, SCOPES)
        except (OSError, ValueError) as exc:
            LOGGER.warning("Ignoring unusable token cache %s: %s", token_path, exc)
            return None

    def reload(self) -> Credentials | None:
        LOGGER.info("Reloading cached credential from %s", self._token_file)
        return self.load_credential()

    def authorize(self, force: bool = False) -> Credentials:
        if not force:
            creds = self.load_credential()
            if creds is not None:
                LOGGER.debug("Using cached credential from %s", self._token_file)
                return creds

        self._read_client_secrets()
        LOGGER.info("Initiating OAuth flow using %s", self._credentials_file)
        flow = InstalledAppFlow.from_client_secrets_file(str(self._credentials_file), scopes=list(SCOPES))
        creds = flow.run_local_server(port=0)
        if creds is not None:
            self.persist(creds)
        return creds

    def persist(self, creds: Credentials) -> None:
        if not creds.refresh_token:
            # Google only issues one on first consent; revoking access forces a new one
            raise ConfigurationError(
                "OAuth flow returned no refresh token. Remove this app at "
                "https://myaccount.google.com/permissions and authorize again."
            )
        client_id, client_secret = self._read_client_secrets()
        payload = {
            "type": "authorized_user",
            "client_id": client_id,
            "client_secret": client_secret,
            "refresh_token": creds.refresh_token,
        }
        LOGGER.debug("Persisting OAuth tokens to %s", self._token_file)
        self._token_file.parent.mkdir(parents=True, exist_ok=True)
        self._token_file.write_text(json.dumps(payload), encoding="utf-8")

    def _read_client_secrets(self) -> Tuple[str, str]:
        path = self._credentials_file
        if not path.exists():
            raise ConfigurationError(
                f"Missing OAuth client file: {path}. Download it from Google Cloud Console."
            )
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise ConfigurationError(f"Unreadable OAuth client file {path}: {exc}") from exc

        key = (data.get("installed") or data.get("web")) if isinstance(data, dict) else None
        if not isinstance(key, dict) or not key.get("client_id") or not key.get("client_secret"):
            raise ConfigurationError(
                f"Invalid OAuth client file {path}. Expected an 'installed' or 'web' client with "
                "client_id and client_secret."
            )
        return key["client_id"], key["client_secret"]
