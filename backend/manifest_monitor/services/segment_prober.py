import asyncio
import logging
import time
from typing import Optional

import aiohttp

from manifest_monitor.config import settings
from manifest_monitor.exceptions import FetchError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class SegmentProber:
    """Fetch a single media segment and measure its load time."""

    def __init__(self, session: aiohttp.ClientSession, timeout: Optional[float] = None):
        self.session = session
        self.timeout = timeout if timeout is not None else settings.DOWNLOAD_TIMEOUT

    async def probe(self, url: str) -> float:
        """Return wall-clock seconds from request start until the body is drained.

        The body is read and discarded. Raises ``FetchError`` on transport
        failures and HTTP error statuses.
        """
        start = time.perf_counter()
        try:
            async with self.session.get(url, timeout=aiohttp.ClientTimeout(total=self.timeout)) as response:
                if response.status >= 400:
                    raise FetchError(f"Segment request returned {response.status}: {url}")
                async for _ in response.content.iter_chunked(CHUNK_SIZE):
                    pass
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise FetchError(f"Error loading segment {url}: {e!r}") from e

        return time.perf_counter() - start
