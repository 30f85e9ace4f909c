import asyncio
import gzip
import json
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import aiofiles

from manifest_monitor.config import settings

logger = logging.getLogger(__name__)


class LoggerService:
    """
    Per-session JSON-lines event log.

    Features:
    - One directory per monitoring session plus an aggregated global log
    - Daily files named YYYY-MM-DD.log in local time
    - Gzip compression and deletion of old files on rotation
    """

    def __init__(self, logs_dir: Optional[Union[str, Path]] = None):
        self.logs_dir = Path(logs_dir or settings.LOGS_DIR)
        self._file_locks: Dict[str, asyncio.Lock] = {}
        self._local_tz = datetime.now().astimezone().tzinfo

    def _session_dir(self, session_id: str) -> Path:
        # Session ids are caller-supplied; keep them inside logs_dir
        safe_id = "".join(c if c.isalnum() or c in "-_." else "_" for c in session_id).strip(".") or "_"
        return self.logs_dir / safe_id

    def _log_file(self, date: datetime, session_id: Optional[str] = None) -> Path:
        directory = self._session_dir(session_id) if session_id else self.logs_dir
        return directory / f"{date.strftime('%Y-%m-%d')}.log"

    def _get_file_lock(self, path: Path) -> asyncio.Lock:
        key = str(path)
        if key not in self._file_locks:
            self._file_locks[key] = asyncio.Lock()
        return self._file_locks[key]

    async def _append(self, path: Path, line: str):
        async with self._get_file_lock(path):
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                async with aiofiles.open(path, mode="a", encoding="utf-8") as f:
                    await f.write(line)
            except OSError as e:
                logger.error(f"Failed to write to log file {path}: {e}")

    async def write_session_event(self, session_id: str, event_type: str, message: str,
                                  severity: str = "info", metadata: Optional[Dict[str, Any]] = None):
        """
        Append a structured event to the session's log and the global log.

        Args:
            session_id: Monitoring session identifier
            event_type: e.g. 'session_started', 'segment_delayed', 'tick_failed'
            message: Human-readable message
            severity: info, warning or error
            metadata: Additional event fields
        """
        now = datetime.now(self._local_tz)
        event = {
            "timestamp": now.isoformat(),
            "session_id": session_id,
            "event_type": event_type,
            "message": message,
            "severity": severity,
            "metadata": metadata or {},
        }
        line = json.dumps(event, default=str, ensure_ascii=False) + "\n"

        await self._append(self._log_file(now, session_id), line)
        await self._append(self._log_file(now), line)

    async def read_session_events(self, session_id: str, days: int = 7,
                                  event_type: Optional[str] = None, limit: int = 500) -> List[Dict]:
        """Read the most recent events of a session, oldest first."""
        now = datetime.now(self._local_tz)
        events: List[Dict] = []

        for offset in range(days, -1, -1):
            log_file = self._log_file(now - timedelta(days=offset), session_id)
            gz_file = log_file.with_suffix(".log.gz")
            if gz_file.exists():
                events.extend(await asyncio.to_thread(self._read_gz_file, gz_file))
            if log_file.exists():
                events.extend(await self._read_log_file(log_file))

        if event_type:
            events = [e for e in events if e.get("event_type") == event_type]
        return events[-limit:] if limit else events

    async def _read_log_file(self, log_file: Path) -> List[Dict]:
        events = []
        try:
            async with aiofiles.open(log_file, mode="r", encoding="utf-8") as f:
                async for line in f:
                    event = _parse_line(line)
                    if event is not None:
                        events.append(event)
        except OSError as e:
            logger.error(f"Error reading log file {log_file}: {e}")
        return events

    @staticmethod
    def _read_gz_file(gz_file: Path) -> List[Dict]:
        events = []
        try:
            with gzip.open(gz_file, "rt", encoding="utf-8") as f:
                for line in f:
                    event = _parse_line(line)
                    if event is not None:
                        events.append(event)
        except OSError as e:
            logger.error(f"Error reading gz log file {gz_file}: {e}")
        return events

    async def rotate_logs(self):
        """Compress logs older than LOG_COMPRESS_DAYS, delete those older than LOG_DELETE_DAYS."""
        if not self.logs_dir.exists():
            return

        now = datetime.now(self._local_tz)
        compress_before = (now - timedelta(days=settings.LOG_COMPRESS_DAYS)).date()
        delete_before = (now - timedelta(days=settings.LOG_DELETE_DAYS)).date()

        directories = [self.logs_dir] + [d for d in self.logs_dir.iterdir() if d.is_dir()]
        for directory in directories:
            for path in list(directory.glob("*.log*")):
                file_date = _file_date(path)
                if file_date is None:
                    continue
                try:
                    if file_date < delete_before:
                        logger.info(f"Deleting old log file: {path}")
                        path.unlink()
                    elif file_date < compress_before and path.suffix == ".log":
                        await asyncio.to_thread(self._compress, path)
                except OSError as e:
                    logger.error(f"Error rotating log file {path}: {e}")

            if directory != self.logs_dir and not any(directory.iterdir()):
                directory.rmdir()

        logger.info(f"Log rotation completed at {now.isoformat()}")

    @staticmethod
    def _compress(path: Path):
        gz_path = path.with_suffix(".log.gz")
        if gz_path.exists():
            return
        with open(path, "rb") as f_in, gzip.open(gz_path, "wb") as f_out:
            f_out.write(f_in.read())
        path.unlink()
        logger.info(f"Compressed log file: {path}")


def _parse_line(line: str) -> Optional[Dict]:
    try:
        return json.loads(line)
    except json.JSONDecodeError:
        return None


def _file_date(path: Path):
    try:
        return datetime.strptime(path.name.split(".", 1)[0], "%Y-%m-%d").date()
    except ValueError:
        return None


# Global instance
log_service = LoggerService()
