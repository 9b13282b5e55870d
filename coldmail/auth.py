# coldmail/auth.py

"""
Sending identity for a run.

Credentials are kept in a SessionStore that is handed to the identity
provider, so several sessions can coexist without any module-level
credential map. The Gmail draft dispatcher reuses the same provider to
build its API client.
"""

import json
import logging
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from google.auth.exceptions import GoogleAuthError, RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build

from coldmail.errors import AuthenticationError

logger = logging.getLogger(__name__)

# Compose covers both draft creation and reading the account's own address
SCOPES = ["https://www.googleapis.com/auth/gmail.compose"]

DEFAULT_SESSION = "default"


# ============================================================
# session stores
# ============================================================

class SessionStore:
    """Authorized-user credential info, keyed by session id."""

    def get(self, session_id: str) -> Optional[Dict]:
        raise NotImplementedError

    def put(self, session_id: str, info: Dict) -> None:
        raise NotImplementedError

    def delete(self, session_id: str) -> None:
        raise NotImplementedError


class InMemorySessionStore(SessionStore):
    def __init__(self):
        self._sessions: Dict[str, Dict] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str) -> Optional[Dict]:
        with self._lock:
            info = self._sessions.get(session_id)
            return dict(info) if info is not None else None

    def put(self, session_id: str, info: Dict) -> None:
        with self._lock:
            self._sessions[session_id] = dict(info)

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)


class TokenFileSessionStore(SessionStore):
    """One JSON token file per session inside a directory."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, session_id: str) -> Path:
        safe = re.sub(r"[^A-Za-z0-9_.-]", "_", session_id or DEFAULT_SESSION).strip(".") or DEFAULT_SESSION
        return self.directory / f"{safe}_token.json"

    def get(self, session_id: str) -> Optional[Dict]:
        path = self._path(session_id)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read token file {path}: {e}")
            return None

    def put(self, session_id: str, info: Dict) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(session_id)
        path.write_text(json.dumps(info, indent=2), encoding="utf-8")
        logger.info(f"Credentials saved to {path}")

    def delete(self, session_id: str) -> None:
        path = self._path(session_id)
        if path.exists():
            path.unlink()


# ============================================================
# identity providers
# ============================================================

class IdentityProvider:
    """Answers which account the drafts are created for."""

    def current_user_email(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class StaticIdentityProvider(IdentityProvider):
    """Fixed sender, for dispatchers that need no login (Outlook, .eml files)."""
    email: str = ""

    def current_user_email(self) -> str:
        return (self.email or "").strip()


class GoogleIdentityProvider(IdentityProvider):
    def __init__(self, store: SessionStore, session_id: str = DEFAULT_SESSION, scopes: Optional[List[str]] = None):
        self.store = store
        self.session_id = session_id
        self.scopes = scopes or SCOPES
        self._email: Optional[str] = None

    def credentials(self) -> Credentials:
        info = self.store.get(self.session_id)
        if not info:
            raise AuthenticationError("No session found. Please log in first.")

        try:
            creds = Credentials.from_authorized_user_info(info, self.scopes)
        except ValueError as e:
            raise AuthenticationError(f"Stored credentials are incomplete: {e}") from e

        if creds.valid:
            return creds

        if creds.expired and creds.refresh_token:
            logger.info("Refreshing expired token...")
            try:
                creds.refresh(Request())
            except (RefreshError, GoogleAuthError) as e:
                raise AuthenticationError(f"Invalid or expired session: {e}") from e
            self.store.put(self.session_id, json.loads(creds.to_json()))
            return creds

        raise AuthenticationError("Invalid or expired session. Please log in again.")

    def gmail_service(self):
        return build("gmail", "v1", credentials=self.credentials(), cache_discovery=False)

    def current_user_email(self) -> str:
        if self._email:
            return self._email
        try:
            profile = self.gmail_service().users().getProfile(userId="me").execute()
        except AuthenticationError:
            raise
        except Exception as e:
            raise AuthenticationError(f"Failed to retrieve user email: {e}") from e

        email = (profile or {}).get("emailAddress")
        if not email:
            raise AuthenticationError("Invalid session or user not authenticated")
        logger.info(f"Authenticated user email: {email}")
        self._email = email
        return email


def authorize(
    client_secrets_path: Path,
    store: SessionStore,
    session_id: str = DEFAULT_SESSION,
    scopes: Optional[List[str]] = None,
    port: int = 0,
) -> Credentials:
    """Run the browser OAuth flow and keep the resulting credentials in `store`."""
    path = Path(client_secrets_path)
    if not path.is_file():
        raise AuthenticationError(f"OAuth client secrets file not found: {path}")

    logger.info("Starting OAuth flow - a browser will open for authorization...")
    flow = InstalledAppFlow.from_client_secrets_file(str(path), scopes or SCOPES)
    creds = flow.run_local_server(port=port)

    store.put(session_id, json.loads(creds.to_json()))
    return creds
