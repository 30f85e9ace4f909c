import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from manifest_monitor.exceptions import SessionNotFoundError
from manifest_monitor.models import SegmentCandidate, SegmentStatus
from manifest_monitor.services.segment_tracker import SegmentTracker
from manifest_monitor.services.url_resolver import validate_manifest_url

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Session:
    session_id: str
    manifest_url: str
    tracker: SegmentTracker
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    task: Optional[asyncio.Task] = None

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self):
        self.cancel_event.set()


class SessionStore:
    """Registry of monitoring sessions behind a single lock.

    Every read or write of the registry or of a session's tracker happens
    inside ``self._lock``. Critical sections never await network I/O.
    """

    def __init__(self, max_history: int = 10):
        self.max_history = max_history
        self._sessions: Dict[str, Session] = {}
        self._lock = asyncio.Lock()

    async def start(
        self,
        session_id: str,
        manifest_url: str,
        launch: Callable[[Session], asyncio.Task],
    ) -> Session:
        """Register a fresh session, replacing and cancelling any previous one.

        ``launch`` runs under the lock and must only schedule the loop.
        """
        validate_manifest_url(manifest_url)

        async with self._lock:
            previous = self._sessions.pop(session_id, None)
            if previous is not None:
                previous.cancel()
                logger.info(f"Restarting session {session_id}")

            session = Session(
                session_id=session_id,
                manifest_url=manifest_url,
                tracker=SegmentTracker(max_history=self.max_history),
            )
            self._sessions[session_id] = session
            session.task = launch(session)

        return session

    async def stop(self, session_id: str) -> Optional[Session]:
        async with self._lock:
            session = self._sessions.pop(session_id, None)
            if session is not None:
                session.cancel()
        return session

    async def stop_all(self) -> List[Session]:
        async with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
            for session in sessions:
                session.cancel()
        return sessions

    async def snapshot(self, session_id: str) -> List[SegmentStatus]:
        async with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            return session.tracker.snapshot()

    async def contains(self, session_id: str) -> bool:
        async with self._lock:
            return session_id in self._sessions

    async def unseen(self, session: Session, candidates: List[SegmentCandidate]) -> List[SegmentCandidate]:
        async with self._lock:
            if not self._is_current(session):
                return []
            return session.tracker.unseen(candidates)

    async def merge(self, session: Session, statuses: List[SegmentStatus]) -> int:
        """Atomically merge one tick's statuses; stale sessions are ignored."""
        async with self._lock:
            if not self._is_current(session):
                return 0
            return session.tracker.merge(statuses)

    def _is_current(self, session: Session) -> bool:
        return not session.cancelled and self._sessions.get(session.session_id) is session

    def __len__(self) -> int:
        return len(self._sessions)
