"""
volenlarge data models.

Defines the data structures for mounted devices, wait outcomes
and the per-run enlargement report.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

GIB = 1024**3


def percentage_increase(size_gib: int, percents: int) -> int:
    """GiB to add to size_gib for a percents increase, rounded up."""
    return -(-size_gib * percents // 100)


@dataclass(frozen=True)
class MountEntry:
    """One record of the live mount table."""

    device_path: str
    mount_point: str
    filesystem: str


@dataclass(frozen=True)
class DeviceNode:
    """A block device identified by its major/minor numbers."""

    major: int
    minor: int

    @property
    def sysfs_name(self) -> str:
        return f"{self.major}:{self.minor}"


class WaitOutcome(Enum):
    """Terminal states of a modification wait."""

    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    TRANSPORT_ERROR = "transport_error"


@dataclass
class WaitResult:
    """Result of one await_completion call."""

    outcome: WaitOutcome
    target: str
    message: str = ""
    attempts: int = 0

    @property
    def completed(self) -> bool:
        return self.outcome is WaitOutcome.COMPLETED


@dataclass
class VolumeResult:
    """What happened to a single volume or claim."""

    target: str
    old_size_gib: int | None = None
    new_size_gib: int | None = None
    snapshot_id: str | None = None
    wait_outcome: WaitOutcome | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "old_size_gib": self.old_size_gib,
            "new_size_gib": self.new_size_gib,
            "snapshot_id": self.snapshot_id,
            "wait_outcome": self.wait_outcome.value if self.wait_outcome else None,
        }


@dataclass
class EnlargeReport:
    """Summary of one volenlarge run."""

    mode: str
    dry_run: bool = False
    volumes: list[VolumeResult] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    ended_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "dry_run": self.dry_run,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_seconds": (
                (self.ended_at - self.started_at).total_seconds()
                if self.ended_at
                else None
            ),
            "volumes": [v.to_dict() for v in self.volumes],
        }
