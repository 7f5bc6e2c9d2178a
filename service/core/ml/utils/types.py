from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Opaque image locator (URL, data URI or provider-side identifier)
ImageRef = str


class JobStatus(str, Enum):
    """Lifecycle of a remote prediction job as observed by the client"""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED)

    @classmethod
    def from_remote(cls, value: str | None) -> "JobStatus":
        """Map a provider status string onto the client's lifecycle states"""
        return _REMOTE_STATUS.get((value or "").lower(), cls.PENDING)


_REMOTE_STATUS = {
    "starting": JobStatus.PENDING,
    "pending": JobStatus.PENDING,
    "queued": JobStatus.PENDING,
    "processing": JobStatus.RUNNING,
    "running": JobStatus.RUNNING,
    "succeeded": JobStatus.SUCCEEDED,
    "failed": JobStatus.FAILED,
    "canceled": JobStatus.FAILED,
    "cancelled": JobStatus.FAILED,
}


class MetricFamily(str, Enum):
    """How a metric's raw model output relates to similarity"""

    SIMILARITY = "similarity"
    DISTANCE = "distance"


@dataclass(frozen=True)
class JobRequest:
    """Capability version plus metric-specific input payload"""

    version: str
    input: dict[str, Any]

    def to_payload(self) -> dict[str, Any]:
        return {"version": self.version, "input": dict(self.input)}


@dataclass
class JobHandle:
    """Snapshot of a remote job returned by submit/poll"""

    id: str
    status: JobStatus
    output: Any = None
    error: str | None = None
    attempts: int = 0


@dataclass(frozen=True)
class MetricScore:
    """Similarity in [0, 1] produced by one metric evaluator"""

    metric: str
    value: float
    success: bool
    processing_time_ms: float = 0.0
    error: str | None = None
    error_type: str | None = None


@dataclass(frozen=True)
class ScoreBreakdown:
    """Public scoring result; components is None on the low-confidence path"""

    similarity: float
    final: int
    components: dict[str, float] | None = field(default=None)

    @property
    def is_low_confidence(self) -> bool:
        return self.components is None
