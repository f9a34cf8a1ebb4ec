"""
Task progress service.

Joins the task API handler and the progress parser: fetch status and log,
reconstruct progress, compute duration.
"""

import logging
import time
from typing import Any, Iterable, List, Optional

from taskprogress.backend.handlers.progress_parser import DEFAULT_MIGRATION_TYPES, reconstruct_progress
from taskprogress.backend.handlers.task_api_handler import TaskApiHandler
from taskprogress.backend.models.task_detail import TaskDetail
from taskprogress.shared.formatting import format_duration
from taskprogress.shared.progress_models import LogLine, ProgressReport, TaskStatusSnapshot

logger = logging.getLogger(__name__)


class TaskProgressService:
    """Service for building task details with reconstructed progress."""

    def __init__(
        self,
        api_handler: Optional[TaskApiHandler],
        migration_types: Iterable[str] = DEFAULT_MIGRATION_TYPES,
        max_display_lines: int = 5000,
    ):
        self.api_handler = api_handler
        self.migration_types = frozenset(migration_types)
        self.max_display_lines = max(0, int(max_display_lines))

    def progress_from_lines(self, status: Optional[TaskStatusSnapshot], lines: Iterable[Any]) -> ProgressReport:
        """Run the parser over already available lines (e.g. a saved log file)."""
        return reconstruct_progress(status, lines, self.migration_types)

    def get_task_detail(self, node: str, upid: str, now: Optional[int] = None) -> Optional[TaskDetail]:
        """
        Build the detail view for one task.

        Args:
            node: Node the task runs on
            upid: Task identifier
            now: Current epoch seconds (defaults to the system clock)

        Returns:
            TaskDetail, or None if the task status could not be read
        """
        status = self.api_handler.get_task_status(node, upid)
        if status is None:
            logger.error(f"Cannot build task detail for {upid}: status unavailable")
            return None

        # A log failure degrades to an empty log; the report then shows the default
        logs = self.api_handler.get_task_log(node, upid)
        report = self.progress_from_lines(status, logs)

        now = int(time.time()) if now is None else int(now)
        duration_sec = self._duration_seconds(status, now)

        logger.debug(f"Task {upid}: {report.display_text}")
        return TaskDetail(
            upid=upid,
            node=node,
            status=status.status,
            report=report,
            duration=format_duration(duration_sec),
            duration_sec=duration_sec,
            task_type=status.task_type or None,
            task_id=status.task_id,
            user=status.user,
            exit_status=status.exit_status,
            start_time=status.start_time,
            end_time=status.end_time,
            total_log_lines=len(logs),
            logs=self._tail(logs),
        )

    @staticmethod
    def _duration_seconds(status: TaskStatusSnapshot, now: int) -> int:
        start = status.start_time or now
        end = status.end_time or (now if status.is_stopped else None)
        if end is not None:
            return end - start
        return now - start

    def _tail(self, logs: List[LogLine]) -> List[LogLine]:
        if self.max_display_lines == 0:
            return []
        if len(logs) > self.max_display_lines:
            return logs[-self.max_display_lines:]
        return list(logs)
