import asyncio
import logging
from functools import singledispatchmethod
from typing import List, Optional

import aiohttp

from manifest_monitor.config import settings
from manifest_monitor.exceptions import DecodeError, FetchError, NoVariantsError
from manifest_monitor.models import ManifestType, SegmentCandidate
from manifest_monitor.services.manifest_parser import (
    DashDocument, DashRepresentation, HlsMasterPlaylist, HlsMediaPlaylist,
    SegmentTemplate, decode_dash, decode_hls, detect_manifest_type,
)
from manifest_monitor.services.url_resolver import resolve_url

logger = logging.getLogger(__name__)


class ManifestResolver:
    """Turns a manifest URL into the absolute segment URLs it currently lists."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        timeout: Optional[float] = None,
        dash_segment_count: Optional[int] = None,
        max_depth: Optional[int] = None,
    ):
        self.session = session
        self.timeout = timeout if timeout is not None else settings.MANIFEST_TIMEOUT
        self.dash_segment_count = (
            dash_segment_count if dash_segment_count is not None else settings.DASH_SEGMENT_COUNT
        )
        self.max_depth = max_depth if max_depth is not None else settings.MAX_PLAYLIST_DEPTH

    async def resolve(self, manifest_url: str) -> List[SegmentCandidate]:
        """Fetch, decode and expand a manifest into segment candidates.

        Raises a ``PipelineError`` subclass on any failure; nothing is retried here.
        """
        manifest_type = detect_manifest_type(manifest_url)

        if manifest_type is ManifestType.HLS:
            candidates = await self._resolve_hls(manifest_url, depth=0)
        else:
            body = await self._fetch(manifest_url)
            candidates = await self._expand(decode_dash(body, manifest_url), 0)

        # Keep first occurrence of each URL, in manifest order
        unique = {}
        for candidate in candidates:
            unique.setdefault(candidate.url, candidate)
        return list(unique.values())

    async def _fetch(self, url: str) -> bytes:
        try:
            async with self.session.get(url, timeout=aiohttp.ClientTimeout(total=self.timeout)) as response:
                if response.status >= 400:
                    raise FetchError(f"Failed to fetch manifest: {response.status} for URL: {url}")
                return await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise FetchError(f"Error fetching manifest {url}: {e!r}") from e

    async def _resolve_hls(self, url: str, depth: int) -> List[SegmentCandidate]:
        body = await self._fetch(url)
        return await self._expand(decode_hls(body, url), depth)

    @singledispatchmethod
    async def _expand(self, manifest, depth: int) -> List[SegmentCandidate]:
        raise DecodeError(f"Unknown manifest structure: {type(manifest).__name__}")

    @_expand.register
    async def _(self, manifest: HlsMediaPlaylist, depth: int) -> List[SegmentCandidate]:
        logger.debug(f"Parsed media playlist with {len(manifest.segments)} segments: {manifest.url}")
        return [
            SegmentCandidate(url=resolve_url(manifest.url, segment.uri), duration=segment.duration)
            for segment in manifest.segments
        ]

    @_expand.register
    async def _(self, manifest: HlsMasterPlaylist, depth: int) -> List[SegmentCandidate]:
        if not manifest.variant_uris:
            raise NoVariantsError(f"Master playlist lists no variants: {manifest.url}")
        if depth >= self.max_depth:
            raise DecodeError(f"Master playlists nested deeper than {self.max_depth}: {manifest.url}")

        # First listed variant, no quality selection
        variant_url = resolve_url(manifest.url, manifest.variant_uris[0])
        logger.debug(f"Master playlist {manifest.url} -> variant {variant_url}")
        return await self._resolve_hls(variant_url, depth + 1)

    @_expand.register
    async def _(self, manifest: DashDocument, depth: int) -> List[SegmentCandidate]:
        candidates = []
        document_base = _join_base(manifest.url, manifest.base_url)

        for period in manifest.periods:
            period_base = _join_base(document_base, period.base_url)
            for adaptation_set in period.adaptation_sets:
                aset_base = _join_base(period_base, adaptation_set.base_url)
                for representation in adaptation_set.representations:
                    template = representation.segment_template or adaptation_set.segment_template
                    if template is None or not template.is_complete:
                        logger.debug(f"Skipping representation {representation.id} without segment template")
                        continue

                    base = _join_base(aset_base, representation.base_url)
                    candidates.extend(self._expand_template(template, representation, base))

        return candidates

    def _expand_template(
        self, template: SegmentTemplate, representation: DashRepresentation, base_url: str
    ) -> List[SegmentCandidate]:
        init_url = resolve_url(base_url, _substitute(template.initialization, representation))
        logger.debug(f"Initialization segment URL: {init_url}")

        return [
            SegmentCandidate(
                url=resolve_url(base_url, _substitute(template.media, representation, number)),
                duration=0.0,
            )
            for number in range(1, self.dash_segment_count + 1)
        ]


def _join_base(parent: str, base_url: Optional[str]) -> str:
    if not base_url:
        return parent
    return resolve_url(parent, base_url)


def _substitute(pattern: str, representation: DashRepresentation, number: Optional[int] = None) -> str:
    if number is not None:
        pattern = pattern.replace("$Number$", str(number))
    if representation.id is not None:
        pattern = pattern.replace("$RepresentationID$", representation.id)
    if representation.bandwidth is not None:
        pattern = pattern.replace("$Bandwidth$", representation.bandwidth)
    return pattern
