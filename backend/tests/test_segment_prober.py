from __future__ import annotations

import aiohttp
import pytest

from manifest_monitor.exceptions import FetchError
from manifest_monitor.services.segment_prober import SegmentProber


@pytest.mark.asyncio
async def test_probe_measures_time_until_body_is_drained(http_server) -> None:
    url = http_server.set("/seg.ts", b"\x47" * 500_000, delay=0.2)

    async with aiohttp.ClientSession() as session:
        load_time = await SegmentProber(session).probe(url)

    assert load_time >= 0.2
    assert http_server.hits("/seg.ts") == 1


@pytest.mark.asyncio
async def test_probe_raises_on_http_error(http_server) -> None:
    async with aiohttp.ClientSession() as session:
        with pytest.raises(FetchError):
            await SegmentProber(session).probe(http_server.url("/missing.ts"))


@pytest.mark.asyncio
async def test_probe_raises_on_timeout(http_server) -> None:
    url = http_server.set("/slow.ts", b"x", delay=1.0)

    async with aiohttp.ClientSession() as session:
        with pytest.raises(FetchError):
            await SegmentProber(session, timeout=0.2).probe(url)


@pytest.mark.asyncio
async def test_probe_raises_on_connection_error() -> None:
    async with aiohttp.ClientSession() as session:
        with pytest.raises(FetchError):
            await SegmentProber(session, timeout=2).probe("http://127.0.0.1:1/seg.ts")


@pytest.mark.asyncio
async def test_malformed_segment_url_raises_fetch_error() -> None:
    async with aiohttp.ClientSession() as session:
        with pytest.raises(FetchError):
            await SegmentProber(session, timeout=2).probe("http://[bad/seg2.ts")
