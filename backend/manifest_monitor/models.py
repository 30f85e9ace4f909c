from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from enum import Enum


class ManifestType(str, Enum):
    HLS = "hls"
    DASH = "dash"


class SegmentCandidate(BaseModel):
    """A segment reference resolved out of a manifest, not yet probed."""
    url: str
    duration: float = Field(default=0.0, ge=0)  # seconds, 0 if unknown


class SegmentStatus(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    url: str
    duration: float = Field(default=0.0, ge=0)  # seconds, manifest-declared
    load_time: float = Field(alias="loadTime", ge=0)  # seconds, measured
    is_delayed: bool = Field(alias="isDelayed")

    @classmethod
    def from_probe(cls, candidate: SegmentCandidate, load_time: float, threshold: float) -> "SegmentStatus":
        return cls(
            url=candidate.url,
            duration=candidate.duration,
            load_time=load_time,
            is_delayed=load_time > threshold,
        )


class StartMonitoringRequest(BaseModel):
    # Missing fields decode as empty strings; an empty url fails validation
    url: str = ""
    id: str = ""


class StopMonitoringRequest(BaseModel):
    id: str = ""


class HealthStatus(BaseModel):
    status: str
    timestamp: datetime
    active_sessions: int
    version: str
