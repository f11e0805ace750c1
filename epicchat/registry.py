"""Process-wide table of in-flight chat sessions.

Each conversation key owns at most one ``CancellationToken``. Starting a new
session under a key cancels the previous one in the same critical section,
so two sessions can never both believe they are the sole owner of a key.
"""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class CancellationToken:
    """One-shot cancellation signal shared by a session and its stream."""

    def __init__(self):
        self._cancelled = False
        self._listeners: list[Callable[[], None]] = []
        self._lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> bool:
        """Trigger the signal.

        Returns:
            True on the first call, False if already cancelled
        """
        with self._lock:
            if self._cancelled:
                return False
            self._cancelled = True
            listeners, self._listeners = self._listeners, []

        for listener in listeners:
            self._notify(listener)
        return True

    def add_listener(self, listener: Callable[[], None]) -> None:
        """Register a callback fired once on cancellation.

        A listener added after cancellation fires immediately.
        """
        with self._lock:
            if not self._cancelled:
                self._listeners.append(listener)
                return
        self._notify(listener)

    def remove_listener(self, listener: Callable[[], None]) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    @staticmethod
    def _notify(listener: Callable[[], None]) -> None:
        try:
            listener()
        except Exception:
            logger.exception("Cancellation listener failed")


class SessionRegistry:
    """Maps conversation keys to the token of their active session."""

    def __init__(self):
        self._sessions: dict[str, CancellationToken] = {}
        self._lock = threading.Lock()

    def begin_session(self, key: str) -> CancellationToken:
        """Supersede any session under ``key`` and register a new one.

        Args:
            key: Conversation key

        Returns:
            Token for the new session
        """
        token = CancellationToken()
        with self._lock:
            previous = self._sessions.pop(key, None)
            if previous is not None:
                previous.cancel()
                logger.debug("Superseded active session for %s", key)
            self._sessions[key] = token
        return token

    def cancel(self, key: str) -> bool:
        """Cancel and remove the session under ``key``.

        Returns:
            True if a session was active
        """
        with self._lock:
            token = self._sessions.pop(key, None)
            if token is None:
                return False
            token.cancel()
        return True

    def end(self, key: str, token: Optional[CancellationToken] = None) -> None:
        """Remove the entry for ``key`` once its session reached a terminal state.

        Args:
            key: Conversation key
            token: When given, only remove the entry if it still belongs to
                this token; a newer session under the same key is kept.
        """
        with self._lock:
            current = self._sessions.get(key)
            if current is None:
                return
            if token is not None and current is not token:
                return
            del self._sessions[key]

    def is_active(self, key: str) -> bool:
        with self._lock:
            return key in self._sessions

    def active_keys(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


default_registry = SessionRegistry()
