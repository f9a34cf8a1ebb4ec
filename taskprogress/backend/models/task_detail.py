"""
Task Detail Model

Everything shown about a single task: identity, timing, progress and the
tail of its log.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from taskprogress.shared.progress_models import LogLine, ProgressReport


@dataclass
class TaskDetail:
    """Status, timing and reconstructed progress of one task."""
    upid: str
    node: str
    status: str
    report: ProgressReport
    duration: str
    duration_sec: int
    task_type: Optional[str] = None
    task_id: Optional[str] = None
    user: Optional[str] = None
    exit_status: Optional[str] = None
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    total_log_lines: int = 0
    logs: List[LogLine] = field(default_factory=list)

    @property
    def is_running(self) -> bool:
        return self.status != "stopped"

    def to_dict(self) -> Dict[str, Any]:
        """Flatten into the shape served to the console frontend."""
        data = {
            'upid': self.upid,
            'node': self.node,
            'type': self.task_type,
            'id': self.task_id,
            'user': self.user,
            'status': self.status,
            'exitstatus': self.exit_status,
            'starttime': self.start_time,
            'endtime': self.end_time,
            'duration': self.duration,
            'durationSec': self.duration_sec,
            'totalLogLines': self.total_log_lines,
            'logs': [line.to_dict() for line in self.logs],
        }
        data.update(self.report.to_dict())
        return data
