from __future__ import annotations

import pytest

from manifest_monitor.exceptions import DecodeError, UnsupportedManifestTypeError
from manifest_monitor.models import ManifestType
from manifest_monitor.services.manifest_parser import (
    DashDocument, HlsMasterPlaylist, HlsMediaPlaylist, decode_dash, decode_hls, detect_manifest_type,
)

from tests.helpers import master_playlist, media_playlist

MPD = """<?xml version="1.0" encoding="UTF-8"?>
<MPD xmlns="urn:mpeg:dash:schema:mpd:2011" type="static">
  <Period id="p0">
    <AdaptationSet mimeType="video/mp4">
      <SegmentTemplate media="$RepresentationID$/seg-$Number$.m4s" initialization="$RepresentationID$/init.mp4"/>
      <Representation id="720p" bandwidth="3000000"/>
      <Representation id="1080p" bandwidth="6000000">
        <BaseURL>hd/</BaseURL>
        <SegmentTemplate media="chunk-$Number$.m4s" initialization="init.mp4"/>
      </Representation>
    </AdaptationSet>
    <AdaptationSet mimeType="audio/mp4">
      <Representation id="audio" bandwidth="128000"/>
    </AdaptationSet>
  </Period>
</MPD>
"""


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://a.com/live/index.m3u8", ManifestType.HLS),
        ("https://a.com/live/index.m3u8?token=1", ManifestType.HLS),
        ("https://a.com/vod/stream.mpd", ManifestType.DASH),
    ],
)
def test_detect_manifest_type(url: str, expected: ManifestType) -> None:
    assert detect_manifest_type(url) is expected


def test_detect_manifest_type_rejects_unknown_suffix() -> None:
    with pytest.raises(UnsupportedManifestTypeError):
        detect_manifest_type("https://a.com/video.mp4")


def test_decode_media_playlist() -> None:
    body = media_playlist("seg1.ts", "seg2.ts", duration=6.0).encode()
    playlist = decode_hls(body, "https://a.com/b/index.m3u8")

    assert isinstance(playlist, HlsMediaPlaylist)
    assert [s.uri for s in playlist.segments] == ["seg1.ts", "seg2.ts"]
    assert all(s.duration == 6.0 for s in playlist.segments)


def test_decode_master_playlist_keeps_variant_order() -> None:
    body = master_playlist("low/index.m3u8", "high/index.m3u8").encode()
    playlist = decode_hls(body, "https://a.com/master.m3u8")

    assert isinstance(playlist, HlsMasterPlaylist)
    assert playlist.variant_uris == ["low/index.m3u8", "high/index.m3u8"]


def test_decode_empty_media_playlist() -> None:
    playlist = decode_hls(b"#EXTM3U\n#EXT-X-TARGETDURATION:4\n", "https://a.com/index.m3u8")
    assert isinstance(playlist, HlsMediaPlaylist)
    assert playlist.segments == []


@pytest.mark.parametrize("body", [b"<html>not a playlist</html>", b"", b"\xff\xfe\x00garbage"])
def test_decode_hls_rejects_non_playlists(body: bytes) -> None:
    with pytest.raises(DecodeError):
        decode_hls(body, "https://a.com/index.m3u8")


def test_decode_dash_structure_and_inheritance() -> None:
    document = decode_dash(MPD.encode(), "https://a.com/vod/stream.mpd")

    assert isinstance(document, DashDocument)
    assert len(document.periods) == 1
    video, audio = document.periods[0].adaptation_sets

    assert video.segment_template is not None
    assert video.segment_template.is_complete
    sd, hd = video.representations
    assert sd.id == "720p" and sd.segment_template is None
    assert hd.base_url == "hd/"
    assert hd.segment_template.media == "chunk-$Number$.m4s"

    assert audio.segment_template is None
    assert audio.representations[0].segment_template is None


@pytest.mark.parametrize("body", [b"<MPD><Period>", b"<NotMPD/>"])
def test_decode_dash_rejects_malformed_documents(body: bytes) -> None:
    with pytest.raises(DecodeError):
        decode_dash(body, "https://a.com/vod/stream.mpd")
