"""Session holder with persistence and logout propagation."""

import json
import logging
import os
from pathlib import Path
from typing import Callable, Optional

from .models import Session

logger = logging.getLogger(__name__)

DEFAULT_SESSION_FILE = str(Path.home() / ".storefront_session.json")

SessionListener = Callable[[Optional[Session]], None]


class SessionHolder:
    """Process-wide session state, passed explicitly to clients and stores."""

    def __init__(self, session_file: Optional[str] = DEFAULT_SESSION_FILE) -> None:
        """
        Initialize the session holder.

        Args:
            session_file: Path to store the session token. ``None`` keeps the
                session in memory only.
        """
        self.session_file = session_file
        self._listeners: list[SessionListener] = []
        self._session: Optional[Session] = self._load_session()
        self._load_token_from_env()

    def _load_session(self) -> Optional[Session]:
        """Load session data from file if it exists."""
        if not self.session_file or not os.path.exists(self.session_file):
            return None
        try:
            with open(self.session_file, "r") as f:
                session = Session(**json.load(f))
        except (OSError, json.JSONDecodeError, ValueError) as e:
            # Corrupted file, start fresh
            logger.warning(f"Could not load session from {self.session_file}: {e}")
            return None
        if not session.is_authenticated:
            return None
        logger.info(f"Loaded existing session from {self.session_file}")
        return session

    def _save_session(self) -> None:
        if not self.session_file or self._session is None:
            return
        try:
            with open(self.session_file, "w") as f:
                json.dump(self._session.model_dump(), f)
            os.chmod(self.session_file, 0o600)
        except OSError as e:
            logger.error(f"Could not save session: {e}")

    def _load_token_from_env(self) -> None:
        """Seed the session from STOREFRONT_TOKEN when no session was persisted."""
        token = os.environ.get("STOREFRONT_TOKEN")
        if token and self._session is None:
            logger.info("Loaded session token from environment")
            self.set(Session(token=token))

    def get(self) -> Optional[Session]:
        """Get the current session, if any."""
        return self._session

    @property
    def token(self) -> Optional[str]:
        if self._session is None or not self._session.is_authenticated:
            return None
        return self._session.token

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def set(self, session: Session) -> None:
        """Replace the current session and persist it."""
        if not session.is_authenticated:
            raise ValueError("Session token must not be empty")
        self._session = session
        self._save_session()
        self._notify()

    def clear(self) -> None:
        """Destroy the current session (logout or rejected token)."""
        had_session = self._session is not None
        self._session = None
        if self.session_file and os.path.exists(self.session_file):
            try:
                os.remove(self.session_file)
            except OSError as e:
                logger.warning(f"Could not delete session file: {e}")
        if had_session:
            logger.info("Session cleared")
            self._notify()

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """
        Register a listener called with the new session (``None`` on clear).

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self._session)
