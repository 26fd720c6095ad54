"""Session management for visitor-scoped lesson history."""

import asyncio
import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session_id"
CLEANUP_INTERVAL_SECONDS = 300


class SessionManager:
    """Keeps per-visitor state in memory and drops it after a period of inactivity."""

    def __init__(self, timeout_minutes: int = 60, clock: Callable[[], datetime] = datetime.now):
        """
        Initialize session manager.

        Args:
            timeout_minutes: Inactivity timeout in minutes (default: 60)
            clock: Source of the current time
        """
        self.timeout = timedelta(minutes=timeout_minutes)
        self.sessions: dict[str, dict[str, Any]] = {}
        self.last_activity: dict[str, datetime] = {}
        self._clock = clock
        self._cleanup_task: Optional[asyncio.Task] = None

    async def start_cleanup_task(self):
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())

    async def stop_cleanup_task(self):
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None

    async def _cleanup_loop(self):
        while True:
            await asyncio.sleep(CLEANUP_INTERVAL_SECONDS)
            removed = self.remove_expired()
            if removed:
                logger.info(f"Removed {removed} expired sessions")

    def remove_expired(self) -> int:
        expired = [session_id for session_id in self.last_activity if self._is_expired(session_id)]
        for session_id in expired:
            self.delete_session(session_id)
        return len(expired)

    def create_session(self) -> str:
        session_id = secrets.token_urlsafe(32)
        self.sessions[session_id] = {}
        self.last_activity[session_id] = self._clock()
        return session_id

    def get_session(self, session_id: str) -> Optional[dict[str, Any]]:
        """
        Get session data and refresh its activity timestamp.

        Returns:
            Session data or None if the session doesn't exist or has expired
        """
        if session_id not in self.sessions:
            return None

        if self._is_expired(session_id):
            self.delete_session(session_id)
            return None

        self.last_activity[session_id] = self._clock()
        return self.sessions[session_id]

    def get_or_create(self, session_id: Optional[str]) -> tuple[str, dict[str, Any]]:
        """
        Resolve the caller's session, starting a new one when needed.

        Returns:
            Tuple of (session_id, session data)
        """
        if session_id:
            session = self.get_session(session_id)
            if session is not None:
                return session_id, session

        session_id = self.create_session()
        return session_id, self.sessions[session_id]

    def delete_session(self, session_id: str) -> bool:
        if session_id in self.sessions:
            del self.sessions[session_id]
            del self.last_activity[session_id]
            return True
        return False

    def _is_expired(self, session_id: str) -> bool:
        last_active = self.last_activity.get(session_id)
        if last_active is None:
            return True
        return self._clock() - last_active > self.timeout
