"""Decoding of raw HLS and DASH manifest bodies into typed structures.

HLS text is handed to the ``m3u8`` library; MPD documents are walked with
ElementTree. Only the parts of each format the monitor consumes are kept.
"""
import xml.etree.ElementTree as ElementTree
from dataclasses import dataclass, field
from typing import List, Optional, Union
from urllib.parse import urlparse

import m3u8
from m3u8.parser import ParseError

from manifest_monitor.exceptions import DecodeError, UnsupportedManifestTypeError
from manifest_monitor.models import ManifestType


@dataclass
class HlsSegment:
    uri: str
    duration: float = 0.0


@dataclass
class HlsMediaPlaylist:
    url: str
    segments: List[HlsSegment] = field(default_factory=list)


@dataclass
class HlsMasterPlaylist:
    url: str
    variant_uris: List[str] = field(default_factory=list)


@dataclass
class SegmentTemplate:
    media: Optional[str] = None
    initialization: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.media and self.initialization)


@dataclass
class DashRepresentation:
    id: Optional[str] = None
    bandwidth: Optional[str] = None
    base_url: Optional[str] = None
    segment_template: Optional[SegmentTemplate] = None


@dataclass
class DashAdaptationSet:
    base_url: Optional[str] = None
    segment_template: Optional[SegmentTemplate] = None
    representations: List[DashRepresentation] = field(default_factory=list)


@dataclass
class DashPeriod:
    base_url: Optional[str] = None
    adaptation_sets: List[DashAdaptationSet] = field(default_factory=list)


@dataclass
class DashDocument:
    url: str
    base_url: Optional[str] = None
    periods: List[DashPeriod] = field(default_factory=list)


DecodedManifest = Union[HlsMediaPlaylist, HlsMasterPlaylist, DashDocument]


def detect_manifest_type(url: str) -> ManifestType:
    """Dispatch on the manifest URL's path suffix."""
    path = urlparse(url).path.lower()
    if path.endswith(".m3u8"):
        return ManifestType.HLS
    if path.endswith(".mpd"):
        return ManifestType.DASH
    raise UnsupportedManifestTypeError(f"Unsupported manifest type: {url}")


def decode_hls(body: bytes, url: str) -> Union[HlsMediaPlaylist, HlsMasterPlaylist]:
    try:
        text = body.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise DecodeError(f"HLS manifest is not valid UTF-8: {url}") from e

    if not text.lstrip().startswith("#EXTM3U"):
        raise DecodeError(f"Missing #EXTM3U header in HLS manifest: {url}")

    try:
        playlist = m3u8.loads(text, uri=url)
    except (ParseError, ValueError) as e:
        raise DecodeError(f"Error decoding HLS manifest {url}: {e}") from e

    # Masters carrying only I-frame or rendition entries still count as masters
    if playlist.is_variant or playlist.iframe_playlists or playlist.media:
        return HlsMasterPlaylist(
            url=url,
            variant_uris=[p.uri for p in playlist.playlists if p.uri],
        )

    return HlsMediaPlaylist(
        url=url,
        segments=[
            HlsSegment(uri=s.uri, duration=max(float(s.duration or 0.0), 0.0))
            for s in playlist.segments
            if s.uri
        ],
    )


def decode_dash(body: bytes, url: str) -> DashDocument:
    try:
        root = ElementTree.fromstring(body)
    except ElementTree.ParseError as e:
        raise DecodeError(f"Error decoding MPD manifest {url}: {e}") from e

    if _local_name(root.tag) != "MPD":
        raise DecodeError(f"Root element is not <MPD> in {url}")

    document = DashDocument(url=url, base_url=_base_url(root))
    for period_elem in root.findall("{*}Period"):
        period = DashPeriod(base_url=_base_url(period_elem))
        for aset_elem in period_elem.findall("{*}AdaptationSet"):
            adaptation_set = DashAdaptationSet(
                base_url=_base_url(aset_elem),
                segment_template=_segment_template(aset_elem),
            )
            for rep_elem in aset_elem.findall("{*}Representation"):
                adaptation_set.representations.append(DashRepresentation(
                    id=rep_elem.get("id"),
                    bandwidth=rep_elem.get("bandwidth"),
                    base_url=_base_url(rep_elem),
                    segment_template=_segment_template(rep_elem),
                ))
            period.adaptation_sets.append(adaptation_set)
        document.periods.append(period)

    return document


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _base_url(element: ElementTree.Element) -> Optional[str]:
    base = element.find("{*}BaseURL")
    if base is None or not (base.text or "").strip():
        return None
    return base.text.strip()


def _segment_template(element: ElementTree.Element) -> Optional[SegmentTemplate]:
    template = element.find("{*}SegmentTemplate")
    if template is None:
        return None
    return SegmentTemplate(
        media=template.get("media"),
        initialization=template.get("initialization"),
    )
