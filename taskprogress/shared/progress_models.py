"""
Progress Data Models

Shared data models for representing task progress state.
Used by the progress parser, the task service and the CLI.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Any
from enum import IntEnum


class MigrationPhase(IntEnum):
    """Migration phases, ordered so a phase can only move forward."""
    INIT = 0
    STORAGE = 1
    LIVE = 2
    FINALIZING = 3
    COMPLETED = 4

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class LogLine:
    """One line of a task log, as returned by the cluster API."""
    sequence: int
    text: str

    @classmethod
    def from_api(cls, entry: Dict[str, Any]) -> 'LogLine':
        """Build from an API log entry like {"n": 12, "t": "..."}."""
        try:
            sequence = int(entry.get('n') or 0)
        except (TypeError, ValueError):
            sequence = 0
        return cls(sequence=sequence, text=str(entry.get('t') or ''))

    def to_dict(self) -> Dict[str, Any]:
        return {'n': self.sequence, 't': self.text}


@dataclass
class TaskStatusSnapshot:
    """Authoritative status of a task, read from the cluster API."""
    status: str
    task_type: str = ""
    exit_status: Optional[str] = None
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    upid: Optional[str] = None
    node: Optional[str] = None
    task_id: Optional[str] = None
    user: Optional[str] = None

    @property
    def is_stopped(self) -> bool:
        return self.status == "stopped"

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'TaskStatusSnapshot':
        """Create from the `data` object of a task status response."""
        return cls(
            status=str(data.get('status') or 'unknown'),
            task_type=str(data.get('type') or ''),
            exit_status=data.get('exitstatus'),
            start_time=_optional_int(data.get('starttime')),
            end_time=_optional_int(data.get('endtime')),
            upid=data.get('upid'),
            node=data.get('node'),
            task_id=data.get('id'),
            user=data.get('user'),
        )


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass
class DiskTransfer:
    """Mirror progress of a single disk during storage migration."""
    disk_id: str
    total_bytes: float = 0.0
    transferred_bytes: float = 0.0
    completed: bool = False
    last_sample_time_sec: float = 0.0  # Elapsed seconds reported by the mirror job
    instantaneous_speed_bps: float = 0.0


@dataclass
class LiveMemoryTransfer:
    """RAM/VM-state transfer during the live phase."""
    transferred_bytes: float = 0.0
    total_bytes: float = 0.0
    speed_bps: float = 0.0


@dataclass
class ProgressState:
    """Working memory of one reconstruction pass. Never shared between calls."""
    phase: MigrationPhase = MigrationPhase.INIT
    disks: Dict[str, DiskTransfer] = field(default_factory=dict)
    live: Optional[LiveMemoryTransfer] = None
    average_speed_bps: Optional[float] = None
    message: str = ""
    start_timestamp: Optional[float] = None
    peak_percent: float = 0.0  # Highest percent seen so far in this pass

    def advance_to(self, phase: MigrationPhase) -> bool:
        """Move to `phase` unless that would go backwards."""
        if phase < self.phase:
            return False
        self.phase = phase
        return True

    @property
    def live_counts(self) -> bool:
        """Whether live memory bytes belong in the totals."""
        return self.live is not None and self.phase >= MigrationPhase.LIVE

    @property
    def total_bytes(self) -> float:
        total = sum(disk.total_bytes for disk in self.disks.values())
        if self.live_counts and self.live.total_bytes > 0:
            total += self.live.total_bytes
        return total

    @property
    def transferred_bytes(self) -> float:
        transferred = sum(disk.transferred_bytes for disk in self.disks.values())
        if self.live_counts and self.live.total_bytes > 0:
            transferred += self.live.transferred_bytes
        return transferred


@dataclass(frozen=True)
class ProgressReport:
    """Progress of a task as shown to the user."""
    percent: float = 0.0  # 0-100, one decimal
    message: str = ""
    speed: str = ""
    eta: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'percent': self.percent,
            'message': self.message,
            'speed': self.speed,
            'eta': self.eta,
        }

    @property
    def display_text(self) -> str:
        """One-line summary like '47.5% - transfer: 1.0 GiB / 2.0 GiB - 10.0 MiB/s - ETA 2m 3s'."""
        parts = [f"{self.percent:.1f}%"]
        if self.message:
            parts.append(self.message)
        if self.speed:
            parts.append(self.speed)
        if self.eta:
            parts.append(f"ETA {self.eta}")
        return " - ".join(parts)
