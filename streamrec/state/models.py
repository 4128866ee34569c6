"""
Data models for the stream recorder.

Defines capture descriptors, capture records and health-check outcomes.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional


class CheckResult(Enum):
    """Outcome of a single health check on a capture."""

    NOT_DUE = "not_due"         # next_check_at unset or in the future
    GROWING = "growing"         # output grew since the last sample
    STALLED = "stalled"         # no growth, termination signal sent
    KILLED = "killed"           # termination ignored, hard kill sent
    MISSING = "missing"         # output file does not exist (yet)
    ERROR = "error"             # stat failed for another reason


class FinalizeOutcome(Enum):
    """What the finalizer did with a finished capture."""

    MISSING = "missing"
    DISCARDED = "discarded"
    MOVED = "moved"
    FAILED = "failed"


@dataclass(frozen=True)
class CaptureDescriptor:
    """Connection parameters negotiated for one capture attempt."""

    server_address: str
    play_path: str


@dataclass(frozen=True)
class OnlineTarget:
    """
    A model eligible for capture this cycle.

    The descriptor is set when the listing already carries the stream
    parameters, in which case negotiation is skipped.
    """

    name: str
    descriptor: Optional[CaptureDescriptor] = None


@dataclass(eq=False)
class CaptureRecord:
    """
    Represents one in-flight capture.

    Owned by the capture registry; created once a worker is running and
    removed only from the worker's exit handler.
    """

    target: str
    output_path: Path
    worker: Any

    # Monotonic timestamps (seconds)
    started_at: float = 0.0
    next_check_at: Optional[float] = None
    terminate_sent_at: Optional[float] = None

    last_observed_size: int = 0

    # Wall clock start, for status output
    started_wall: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if isinstance(self.output_path, str):
            self.output_path = Path(self.output_path)

    @property
    def filename(self) -> str:
        return self.output_path.name

    @property
    def pid(self) -> Optional[int]:
        return getattr(self.worker, 'pid', None)

    def is_due(self, now: float) -> bool:
        """Check whether the record should be sampled at ``now``."""
        return self.next_check_at is not None and self.next_check_at <= now

    def mark_growing(self, size: int, now: float, interval: float) -> None:
        """Record observed growth and push the next check out."""
        self.last_observed_size = size
        self.next_check_at = now + interval

    def mark_terminating(self, now: float) -> None:
        if self.terminate_sent_at is None:
            self.terminate_sent_at = now

    def to_dict(self) -> dict:
        """Convert to dictionary for status output."""
        return {
            'target': self.target,
            'pid': self.pid,
            'filename': self.filename,
            'started_at': self.started_wall.isoformat(),
            'next_check_at': self.next_check_at,
            'last_observed_size': self.last_observed_size,
            'terminating': self.terminate_sent_at is not None,
        }


@dataclass
class CycleStats:
    """Counters gathered during one scan cycle."""

    online: int = 0
    started: int = 0
    failed: int = 0
    skipped: int = 0
    checked: int = 0
    stalled: int = 0
    active: int = 0

    def to_dict(self) -> dict:
        return {
            'online': self.online,
            'started': self.started,
            'failed': self.failed,
            'skipped': self.skipped,
            'checked': self.checked,
            'stalled': self.stalled,
            'active': self.active,
        }
