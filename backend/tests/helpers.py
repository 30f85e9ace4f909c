from __future__ import annotations

import asyncio
import time


def media_playlist(*segments: str, duration: float = 4.0) -> str:
    lines = ["#EXTM3U", "#EXT-X-VERSION:3", f"#EXT-X-TARGETDURATION:{int(duration)}", "#EXT-X-MEDIA-SEQUENCE:0"]
    for segment in segments:
        lines.append(f"#EXTINF:{duration},")
        lines.append(segment)
    return "\n".join(lines) + "\n"


def master_playlist(*variants: str) -> str:
    lines = ["#EXTM3U"]
    for i, variant in enumerate(variants):
        lines.append(f"#EXT-X-STREAM-INF:BANDWIDTH={(i + 1) * 800000},RESOLUTION=640x360")
        lines.append(variant)
    return "\n".join(lines) + "\n"


async def wait_until(predicate, timeout: float = 5.0, interval: float = 0.02) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        result = predicate()
        if asyncio.iscoroutine(result):
            result = await result
        if result:
            return True
        await asyncio.sleep(interval)
    return False
