from collections import deque
from typing import Deque, Iterable, List, Set

from manifest_monitor.models import SegmentCandidate, SegmentStatus


class SegmentTracker:
    """Per-session dedup set and bounded, ordered segment history.

    ``seen_urls`` only ever grows, so a segment evicted from ``history``
    is never probed or recorded again. Not thread-safe; callers serialize
    access through the session store lock.
    """

    def __init__(self, max_history: int = 10):
        self.seen_urls: Set[str] = set()
        self.history: Deque[SegmentStatus] = deque(maxlen=max_history)

    def unseen(self, candidates: Iterable[SegmentCandidate]) -> List[SegmentCandidate]:
        return [c for c in candidates if c.url not in self.seen_urls]

    def merge(self, statuses: Iterable[SegmentStatus]) -> int:
        """Append new statuses in order, evicting the oldest past the bound."""
        added = 0
        for status in statuses:
            if status.url in self.seen_urls:
                continue
            self.seen_urls.add(status.url)
            self.history.append(status)
            added += 1
        return added

    def snapshot(self) -> List[SegmentStatus]:
        return list(self.history)

    def __len__(self) -> int:
        return len(self.history)
