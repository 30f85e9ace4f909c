import asyncio
import logging
from typing import List, Optional, Set

import aiohttp

from manifest_monitor.config import settings
from manifest_monitor.exceptions import FetchError, PipelineError
from manifest_monitor.models import SegmentStatus
from manifest_monitor.services.logger_service import LoggerService, log_service
from manifest_monitor.services.manifest_resolver import ManifestResolver
from manifest_monitor.services.segment_prober import SegmentProber
from manifest_monitor.services.session_store import Session, SessionStore

logger = logging.getLogger(__name__)


class ManifestMonitor:
    """Session-scoped HLS/DASH manifest monitoring engine.

    Each session runs its own task that polls the manifest every
    ``poll_interval`` seconds, probes segments it has not seen before and
    merges the results into the session's bounded history.
    """

    def __init__(
        self,
        poll_interval: Optional[float] = None,
        delay_threshold: Optional[float] = None,
        max_history: Optional[int] = None,
        fire_on_start: Optional[bool] = None,
        event_log: Optional[LoggerService] = None,
    ):
        self.poll_interval = poll_interval if poll_interval is not None else settings.MANIFEST_POLL_INTERVAL
        self.delay_threshold = delay_threshold if delay_threshold is not None else settings.DELAY_THRESHOLD
        self.fire_on_start = fire_on_start if fire_on_start is not None else settings.FIRE_ON_START
        self.event_log = event_log or log_service

        self.store = SessionStore(max_history=max_history if max_history is not None else settings.MAX_HISTORY)
        self.session: Optional[aiohttp.ClientSession] = None
        self.resolver: Optional[ManifestResolver] = None
        self.prober: Optional[SegmentProber] = None
        self._background: Set[asyncio.Task] = set()

    async def start(self):
        """Initialize the monitor."""
        self.session = aiohttp.ClientSession(headers={"User-Agent": f"ManifestMonitor/{settings.APP_VERSION}"})
        self.resolver = ManifestResolver(self.session)
        self.prober = SegmentProber(self.session)
        logger.info("ManifestMonitor started")

    async def stop(self):
        """Stop every session and release the HTTP session."""
        sessions = await self.store.stop_all()
        tasks = [s.task for s in sessions if s.task is not None]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

        if self.session:
            await self.session.close()
            self.session = None

        logger.info("ManifestMonitor stopped")

    @property
    def active_sessions(self) -> int:
        return len(self.store)

    async def start_session(self, session_id: str, manifest_url: str) -> Session:
        """Start (or restart) monitoring ``manifest_url`` under ``session_id``.

        Raises ``InvalidURLError`` for non-http(s) URLs.
        """
        if self.session is None:
            raise RuntimeError("ManifestMonitor.start() has not been called")

        session = await self.store.start(
            session_id,
            manifest_url,
            launch=lambda s: asyncio.create_task(self._monitor_session(s), name=f"monitor:{session_id}"),
        )
        logger.info(f"Started monitoring session {session_id}: {manifest_url}")
        self._fire_and_forget(self.event_log.write_session_event(
            session_id,
            "session_started",
            f"Started monitoring {manifest_url}",
            metadata={"manifest_url": manifest_url},
        ))
        return session

    async def stop_session(self, session_id: str) -> bool:
        """Stop a session; unknown ids are a no-op."""
        session = await self.store.stop(session_id)
        if session is None:
            return False

        logger.info(f"Stopped monitoring session {session_id}")
        self._fire_and_forget(self.event_log.write_session_event(
            session_id, "session_stopped", "Stopped monitoring"
        ))
        return True

    async def get_history(self, session_id: str) -> List[SegmentStatus]:
        return await self.store.snapshot(session_id)

    async def has_session(self, session_id: str) -> bool:
        return await self.store.contains(session_id)

    async def _monitor_session(self, session: Session):
        """Main monitoring loop for a session."""
        if self.fire_on_start and not session.cancelled:
            await self._safe_tick(session)

        while await self._wait_for_next_tick(session):
            await self._safe_tick(session)

        logger.debug(f"Monitoring loop for session {session.session_id} exited")

    async def _wait_for_next_tick(self, session: Session) -> bool:
        """Sleep one interval; False once the session's cancel signal is set."""
        try:
            await asyncio.wait_for(session.cancel_event.wait(), timeout=self.poll_interval)
        except asyncio.TimeoutError:
            return not session.cancelled
        return False

    async def _safe_tick(self, session: Session):
        try:
            await self.run_tick(session)
        except PipelineError as e:
            logger.warning(f"Tick failed for session {session.session_id}: {e}")
            self._fire_and_forget(self.event_log.write_session_event(
                session.session_id, "tick_failed", str(e),
                severity="warning", metadata={"error_type": type(e).__name__},
            ))
        except Exception as e:
            logger.exception(f"Error monitoring session {session.session_id}: {e}")

    async def run_tick(self, session: Session) -> int:
        """Run fetch -> decode -> probe -> merge once; returns the number of segments added."""
        candidates = await self.resolver.resolve(session.manifest_url)
        fresh = await self.store.unseen(session, candidates)

        staged: List[SegmentStatus] = []
        for candidate in fresh:
            if session.cancelled:
                return 0
            try:
                load_time = await self.prober.probe(candidate.url)
            except FetchError as e:
                logger.warning(f"Skipping segment for session {session.session_id}: {e}")
                continue

            status = SegmentStatus.from_probe(candidate, load_time, self.delay_threshold)
            if status.is_delayed:
                logger.warning(f"Delayed segment in session {session.session_id}: {status.url} ({load_time:.3f}s)")
                self._fire_and_forget(self.event_log.write_session_event(
                    session.session_id, "segment_delayed",
                    f"Segment took {load_time:.3f}s to load",
                    severity="warning", metadata=status.model_dump(by_alias=True),
                ))
            staged.append(status)

        added = await self.store.merge(session, staged)
        logger.debug(
            f"Session {session.session_id}: {len(candidates)} listed, {len(fresh)} new, {added} recorded"
        )
        return added

    def _fire_and_forget(self, coro):
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)


# Global instance
manifest_monitor = ManifestMonitor()
