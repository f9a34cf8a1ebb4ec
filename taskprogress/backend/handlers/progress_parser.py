"""
Progress Parser

Rebuilds structured progress (phase, percent, speed, ETA) from the free-text
log of a running cluster task. The cluster exposes no progress API for
migrations, so everything here is inferred from log lines.

reconstruct_progress() is a pure function: no I/O, no state kept between calls.
"""

import logging
import re
from datetime import datetime
from typing import Any, Iterable, Optional

from taskprogress.shared.formatting import (
    format_duration,
    format_size,
    format_speed,
    parse_size,
    round_half_up,
)
from taskprogress.shared.progress_models import (
    DiskTransfer,
    LiveMemoryTransfer,
    LogLine,
    MigrationPhase,
    ProgressReport,
    ProgressState,
    TaskStatusSnapshot,
)

logger = logging.getLogger(__name__)

STARTING_MESSAGE = "Starting…"
IN_PROGRESS_MESSAGE = "In progress…"
SUCCESS_MESSAGE = "Completed successfully"
MIGRATION_SUCCESS_MESSAGE = "Migration completed successfully"

DEFAULT_MIGRATION_TYPES = frozenset({"qmigrate", "vzmigrate"})

# Storage/live progress is capped below 100: byte totals are approximate and
# finalization is not represented in bytes at all.
IN_FLIGHT_SCALE = 0.95
FINALIZING_FLOOR = 95.0

_DISK_ID = r'(drive-\S+|scsi\d+|virtio\d+|ide\d+|sata\d+|efidisk\d+)'


def _line_text(entry: Any) -> str:
    """Accept LogLine objects, API dicts or bare strings."""
    if entry is None:
        return ''
    if isinstance(entry, LogLine):
        return entry.text or ''
    if isinstance(entry, str):
        return entry
    if isinstance(entry, dict):
        return str(entry.get('t') or '')
    return str(getattr(entry, 'text', '') or '')


def is_migration_task(task_type: Optional[str], migration_types: Iterable[str] = DEFAULT_MIGRATION_TYPES) -> bool:
    """Check whether a task type identifier names a migration."""
    if not task_type:
        return False
    return 'migrate' in task_type or task_type in set(migration_types)


class MigrationProgressParser:
    """
    Phase state machine for VM migration logs.

    Each line is classified against a fixed set of patterns; the first match
    wins and unrelated lines are ignored. Phases only move forward:
    INIT -> STORAGE -> LIVE -> FINALIZING -> COMPLETED.
    """

    def __init__(self):
        """Initialize parser with pattern definitions."""
        # Optional leading timestamp: "2026-01-23 15:42:29 ..."
        self.timestamp_pattern = re.compile(r'^(\d{4}-\d{2}-\d{2}\s+\d{2}:\d{2}:\d{2})')

        # "drive-scsi0: transferred 12.0 GiB of 32.0 GiB (37.50%) in 95s"
        self.disk_transfer_pattern = re.compile(
            _DISK_ID + r':\s*transferred\s+([\d.]+)\s*(\w+)\s+of\s+([\d.]+)\s*(\w+)\s*\(([\d.]+)%\)(?:\s+in\s+(\d+)s)?',
            re.IGNORECASE
        )
        # "mirror-scsi0: drive-scsi0 32.0 GiB ... ready"
        self.disk_ready_pattern = re.compile(
            _DISK_ID + r'.*?(\d+[\d.]*)\s*(\w+).*ready$',
            re.IGNORECASE
        )
        # "migration active, transferred 1.2 GiB of 8.0 GiB VM-state, 112.4 MiB/s"
        self.live_progress_pattern = re.compile(
            r'migration active.*?transferred\s+([\d.]+)\s*(\w+)\s+of\s+([\d.]+)\s*(\w+)\s+VM-state,?\s*([\d.]+)\s*(\w+)/s',
            re.IGNORECASE
        )
        self.average_speed_pattern = re.compile(r'average migration speed:\s*([\d.]+)\s*(\w+)/s', re.IGNORECASE)
        self.finished_pattern = re.compile(r'migration finished successfully', re.IGNORECASE)
        self.live_start_pattern = re.compile(r'starting online/live migration', re.IGNORECASE)
        self.live_completed_pattern = re.compile(r'migration (completed|status: completed)', re.IGNORECASE)
        self.mirror_ready_pattern = re.compile(r"all 'mirror' jobs are ready", re.IGNORECASE)
        self.switching_pattern = re.compile(r'switching mirror jobs to actively synced mode', re.IGNORECASE)

        # Informational markers: (pattern, phase to advance to or None, message)
        self.marker_patterns = [
            (re.compile(r'starting migration of VM', re.IGNORECASE), None, "starting migration…"),
            (re.compile(r'starting storage migration', re.IGNORECASE), MigrationPhase.STORAGE, "storage migration in progress"),
            (re.compile(r'stopping NBD', re.IGNORECASE), MigrationPhase.FINALIZING, "cleaning up…"),
        ]

    def parse(self, log_lines: Iterable[Any]) -> ProgressReport:
        """Scan all lines once and build the report."""
        state = ProgressState(message=STARTING_MESSAGE)
        for entry in log_lines:
            self.process_line(state, _line_text(entry))
        return self.build_report(state)

    def process_line(self, state: ProgressState, text: str) -> bool:
        """
        Apply one log line to the state.

        Returns:
            True if the line matched a progress pattern, False otherwise
        """
        matched = self._apply_line(state, text)
        if matched:
            # A new disk or the first memory sample grows the total; the bar holds
            state.peak_percent = max(state.peak_percent, self.current_percent(state))
        return matched

    def _apply_line(self, state: ProgressState, text: str) -> bool:
        text = text.rstrip('\r\n')
        if not text:
            return False

        if state.start_timestamp is None:
            self._anchor_start_time(state, text)

        if self.finished_pattern.search(text):
            state.advance_to(MigrationPhase.COMPLETED)
            state.message = MIGRATION_SUCCESS_MESSAGE
            return True

        transfer_match = self.disk_transfer_pattern.search(text)
        if transfer_match:
            self._apply_disk_transfer(state, transfer_match)
            return True

        ready_match = self.disk_ready_pattern.search(text)
        if ready_match:
            disk = state.disks.get(ready_match.group(1).rstrip(':,'))
            if disk:
                disk.completed = True
                disk.transferred_bytes = disk.total_bytes
            return True

        if self.mirror_ready_pattern.search(text):
            state.message = "disks synchronized"
            return True

        if self.switching_pattern.search(text):
            state.message = "active synchronization…"
            return True

        if self.live_start_pattern.search(text):
            if state.advance_to(MigrationPhase.LIVE):
                state.message = "live memory migration in progress"
            return True

        live_match = self.live_progress_pattern.search(text)
        if live_match:
            self._apply_live_progress(state, live_match)
            return True

        avg_match = self.average_speed_pattern.search(text)
        if avg_match:
            state.average_speed_bps = parse_size(avg_match.group(1), avg_match.group(2))
            return True

        if self.live_completed_pattern.search(text):
            if state.advance_to(MigrationPhase.FINALIZING):
                state.message = "finalizing"
            return True

        for pattern, phase, message in self.marker_patterns:
            if pattern.search(text):
                if phase is None or state.advance_to(phase):
                    state.message = message
                return True

        return False

    def _anchor_start_time(self, state: ProgressState, text: str):
        time_match = self.timestamp_pattern.match(text)
        if not time_match:
            return
        try:
            stamp = datetime.strptime(' '.join(time_match.group(1).split()), '%Y-%m-%d %H:%M:%S')
        except ValueError:
            return
        state.start_timestamp = stamp.timestamp()

    def _apply_disk_transfer(self, state: ProgressState, match: re.Match):
        disk_id = match.group(1)
        transferred = parse_size(match.group(2), match.group(3))
        total = parse_size(match.group(4), match.group(5))
        elapsed = float(match.group(7)) if match.group(7) else 0.0

        disk = state.disks.get(disk_id)
        if disk is None:
            disk = DiskTransfer(disk_id=disk_id)
            state.disks[disk_id] = disk
            previous = None
        else:
            previous = (disk.transferred_bytes, disk.last_sample_time_sec)

        speed = 0.0
        if elapsed > 0 and transferred > 0:
            speed = transferred / elapsed
        elif previous and elapsed > previous[1] and transferred > previous[0]:
            speed = (transferred - previous[0]) / (elapsed - previous[1])

        # Counters are cumulative; a late or repeated sample never moves them back
        disk.total_bytes = max(disk.total_bytes, total)
        disk.transferred_bytes = max(disk.transferred_bytes, transferred)
        disk.completed = disk.completed or disk.transferred_bytes >= disk.total_bytes
        disk.last_sample_time_sec = elapsed
        disk.instantaneous_speed_bps = speed

        state.advance_to(MigrationPhase.STORAGE)
        if state.phase < MigrationPhase.FINALIZING:
            state.message = f"{disk_id}: {format_size(transferred)} / {format_size(total)}"

    def _apply_live_progress(self, state: ProgressState, match: re.Match):
        transferred = parse_size(match.group(1), match.group(2))
        total = parse_size(match.group(3), match.group(4))
        speed = parse_size(match.group(5), match.group(6))

        if state.live is None:
            state.live = LiveMemoryTransfer()
        state.live.transferred_bytes = max(state.live.transferred_bytes, transferred)
        state.live.total_bytes = max(state.live.total_bytes, total)
        state.live.speed_bps = speed

        if state.advance_to(MigrationPhase.LIVE):
            state.message = f"memory: {format_size(transferred)} / {format_size(total)}"

    def current_speed(self, state: ProgressState) -> float:
        """
        Speed used for the report and the ETA.

        Authoritative average speed if reported, else the mean of per-disk
        speeds, else the last live memory rate.
        """
        if state.average_speed_bps and state.average_speed_bps > 0:
            return state.average_speed_bps
        # Plain mean over disks, not weighted by disk size
        speeds = [disk.instantaneous_speed_bps for disk in state.disks.values() if disk.instantaneous_speed_bps > 0]
        if speeds:
            return sum(speeds) / len(speeds)
        if state.live is not None and state.live.speed_bps > 0:
            return state.live.speed_bps
        return 0.0

    def current_percent(self, state: ProgressState) -> float:
        """Percent for the current totals and phase, before the running maximum."""
        total = state.total_bytes
        raw_percent = 100.0 * state.transferred_bytes / total if total > 0 else 0.0

        if state.phase == MigrationPhase.COMPLETED:
            percent = 100.0
        elif state.phase == MigrationPhase.FINALIZING:
            percent = max(raw_percent, FINALIZING_FLOOR)
        else:
            percent = raw_percent * IN_FLIGHT_SCALE
        return min(max(round_half_up(percent, 1), 0.0), 100.0)

    def build_report(self, state: ProgressState) -> ProgressReport:
        """Aggregate the scanned state into the report shown to the user."""
        total = state.total_bytes
        transferred = state.transferred_bytes
        percent = max(state.peak_percent, self.current_percent(state))

        speed = self.current_speed(state)
        remaining = total - transferred
        eta = format_duration(remaining / speed) if speed > 0 and remaining > 0 else ""

        message = state.message
        if state.phase in (MigrationPhase.STORAGE, MigrationPhase.LIVE) and total > 0:
            message = f"transfer: {format_size(transferred)} / {format_size(total)}"

        logger.debug(
            f"Migration progress: phase={state.phase.label} disks={len(state.disks)} "
            f"bytes={transferred:.0f}/{total:.0f} percent={percent}"
        )
        return ProgressReport(
            percent=percent,
            message=message,
            speed=format_speed(speed) if speed > 0 else "",
            eta=eta,
        )


class GenericProgressParser:
    """
    Best-effort progress for tasks without a dedicated state machine.

    Looks for a percentage (running maximum), a "transferred A of B" token,
    a rate token and the "TASK OK" terminal marker.
    """

    def __init__(self):
        self.percent_pattern = re.compile(r'(\d+(?:\.\d+)?)\s*%')
        self.transfer_pattern = re.compile(r'transferred\s+([\d.]+)\s*(\w+)\s+of\s+([\d.]+)\s*(\w+)', re.IGNORECASE)
        self.speed_pattern = re.compile(r'([\d.]+)\s*(\w+)/s')
        self.terminal_marker = 'TASK OK'

    def parse(self, log_lines: Iterable[Any]) -> ProgressReport:
        percent = 0.0
        message = STARTING_MESSAGE
        speed = ""

        for entry in log_lines:
            text = _line_text(entry)
            if not text:
                continue

            percent_match = self.percent_pattern.search(text)
            if percent_match:
                percent = max(percent, float(percent_match.group(1)))
                if message == STARTING_MESSAGE:
                    message = IN_PROGRESS_MESSAGE

            transfer_match = self.transfer_pattern.search(text)
            if transfer_match:
                current_val, current_unit, total_val, total_unit = transfer_match.groups()
                message = f"transfer: {current_val} {current_unit} / {total_val} {total_unit}"

            speed_match = self.speed_pattern.search(text)
            if speed_match:
                speed = f"{speed_match.group(1)} {speed_match.group(2)}/s"

            if self.terminal_marker in text:
                percent = 100.0
                message = SUCCESS_MESSAGE

        percent = min(max(round_half_up(percent, 1), 0.0), 100.0)
        return ProgressReport(percent=percent, message=message, speed=speed, eta="")


def terminal_report(status: TaskStatusSnapshot) -> ProgressReport:
    """Report for a task the cluster already marked as stopped."""
    if status.exit_status == "OK":
        message = SUCCESS_MESSAGE
    else:
        message = f"Failed: {status.exit_status or 'unknown error'}"
    return ProgressReport(percent=100.0, message=message, speed="", eta="")


def reconstruct_progress(
    status: Optional[TaskStatusSnapshot],
    log_lines: Optional[Iterable[Any]],
    migration_types: Iterable[str] = DEFAULT_MIGRATION_TYPES,
) -> ProgressReport:
    """
    Compute the progress report for a task.

    Args:
        status: Authoritative status snapshot (may be None)
        log_lines: Ordered task log lines (LogLine, API dicts or strings)
        migration_types: Task type identifiers handled by the migration parser

    Returns:
        ProgressReport. Never raises on malformed input.
    """
    if status is not None and status.is_stopped:
        return terminal_report(status)

    lines = list(log_lines or [])
    if not lines:
        return ProgressReport(percent=0.0, message=STARTING_MESSAGE, speed="", eta="")

    task_type = status.task_type if status is not None else ""
    if is_migration_task(task_type, migration_types):
        return MigrationProgressParser().parse(lines)
    return GenericProgressParser().parse(lines)
