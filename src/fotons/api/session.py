"""Persisted authentication state shared by the API client and the CLI."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from .models import AuthenticatedUser

logger = logging.getLogger(__name__)


class SessionContext:
    """Access token, user and cookies for one signed-in user.

    ``load`` restores a session written by a previous run, ``store`` persists
    it after login or token refresh, and ``clear`` tears it down on logout.
    Without a ``path`` the session lives in memory only.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = path
        self.access_token: Optional[str] = None
        self.user: Optional[AuthenticatedUser] = None
        self.cookies: dict[str, str] = {}

    @classmethod
    def load(cls, path: Optional[Path]) -> "SessionContext":
        session = cls(path)
        if path is None or not path.exists():
            return session
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(f"Ignoring unreadable session file {path}: {exc}")
            return session

        session.access_token = data.get("accessToken")
        user = data.get("user")
        session.user = AuthenticatedUser.from_dict(user) if user else None
        session.cookies = dict(data.get("cookies") or {})
        return session

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)

    def store(
        self,
        access_token: str,
        *,
        user: Optional[AuthenticatedUser] = None,
        cookies: Optional[dict[str, str]] = None,
    ) -> None:
        self.access_token = access_token
        if user is not None:
            self.user = user
        if cookies is not None:
            self.cookies = dict(cookies)
        self._write()

    def clear(self) -> None:
        self.access_token = None
        self.user = None
        self.cookies = {}
        if self.path is not None and self.path.exists():
            self.path.unlink()

    def _write(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "accessToken": self.access_token,
            "user": self.user.to_dict() if self.user else None,
            "cookies": self.cookies,
        }
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        # an existing file keeps its old mode through os.open
        os.chmod(self.path, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(json.dumps(payload, indent=2))
