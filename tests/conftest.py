import logging
from typing import List

import pytest

from taskprogress.backend.handlers.config_handler import ConfigHandler
from taskprogress.shared.progress_models import LogLine, TaskStatusSnapshot

STORAGE_MIGRATION_LOG = [
    "2026-01-23 15:42:29 starting migration of VM 100 to node 'pve2' (10.0.0.2)",
    "2026-01-23 15:42:29 found local disk 'local-lvm:vm-100-disk-0' (attached)",
    "2026-01-23 15:42:30 starting storage migration",
    "2026-01-23 15:42:31 drive mirror is starting for drive-scsi0",
    "2026-01-23 15:42:31 drive-scsi0: transferred 0.0 B of 32.0 GiB (0.00%) in 0s",
    "2026-01-23 15:43:11 drive-scsi0: transferred 8.0 GiB of 32.0 GiB (25.00%) in 40s",
    "2026-01-23 15:43:51 drive-scsi0: transferred 16.0 GiB of 32.0 GiB (50.00%) in 80s",
    "2026-01-23 15:45:11 drive-scsi0: transferred 32.0 GiB of 32.0 GiB (100.00%) in 160s, ready",
    "2026-01-23 15:45:11 all 'mirror' jobs are ready",
    "2026-01-23 15:45:12 switching mirror jobs to actively synced mode",
    "2026-01-23 15:45:12 starting online/live migration on unix:/run/qemu-server/100.migrate",
    "2026-01-23 15:45:20 migration status: completed",
    "2026-01-23 15:45:21 stopping NBD storage migration server on target.",
    "2026-01-23 15:45:34 migration finished successfully (duration 00:03:05)",
    "TASK OK",
]

LIVE_MIGRATION_LOG = [
    "2026-01-23 16:00:00 starting migration of VM 101 to node 'pve3' (10.0.0.3)",
    "2026-01-23 16:00:01 starting VM 101 on remote node 'pve3'",
    "2026-01-23 16:00:03 start remote tunnel",
    "2026-01-23 16:00:04 starting online/live migration on tcp:10.0.0.3:60000",
    "2026-01-23 16:00:04 set migration capabilities",
    "2026-01-23 16:00:04 migration downtime limit: 100 ms",
    "2026-01-23 16:00:05 migration active, transferred 1.0 GiB of 8.0 GiB VM-state, 1.0 GiB/s",
    "2026-01-23 16:00:07 migration active, transferred 4.0 GiB of 8.0 GiB VM-state, 1.5 GiB/s",
    "2026-01-23 16:00:10 migration active, transferred 7.5 GiB of 8.0 GiB VM-state, 1.2 GiB/s",
    "2026-01-23 16:00:11 average migration speed: 1.3 GiB/s - downtime 45 ms",
    "2026-01-23 16:00:11 migration status: completed",
    "2026-01-23 16:00:12 migration finished successfully (duration 00:00:12)",
    "TASK OK",
]


SEQUENTIAL_DISKS_LOG = [
    "2026-01-23 17:00:00 starting migration of VM 102 to node 'pve2' (10.0.0.2)",
    "2026-01-23 17:00:01 starting storage migration",
    "2026-01-23 17:00:02 drive-scsi0: transferred 0.0 B of 32.0 GiB (0.00%) in 0s",
    "2026-01-23 17:01:02 drive-scsi0: transferred 16.0 GiB of 32.0 GiB (50.00%) in 60s",
    "2026-01-23 17:02:02 drive-scsi0: transferred 32.0 GiB of 32.0 GiB (100.00%) in 120s, ready",
    "2026-01-23 17:02:03 drive-scsi1: transferred 0.0 B of 64.0 GiB (0.00%) in 0s",
    "2026-01-23 17:03:43 drive-scsi1: transferred 32.0 GiB of 64.0 GiB (50.00%) in 100s",
    "2026-01-23 17:05:23 drive-scsi1: transferred 64.0 GiB of 64.0 GiB (100.00%) in 200s, ready",
    "2026-01-23 17:05:23 all 'mirror' jobs are ready",
    "2026-01-23 17:05:24 switching mirror jobs to actively synced mode",
    "2026-01-23 17:05:24 starting online/live migration on unix:/run/qemu-server/102.migrate",
    "2026-01-23 17:05:25 migration active, transferred 100.0 MiB of 4.0 GiB VM-state, 100.0 MiB/s",
    "2026-01-23 17:05:28 migration active, transferred 3.0 GiB of 4.0 GiB VM-state, 1.0 GiB/s",
    "2026-01-23 17:05:29 average migration speed: 900.0 MiB/s - downtime 38 ms",
    "2026-01-23 17:05:29 migration status: completed",
    "2026-01-23 17:05:30 stopping NBD storage migration server on target.",
    "2026-01-23 17:05:41 migration finished successfully (duration 00:05:41)",
    "TASK OK",
]


def build_migration_log(disk_sizes_gib: List[int], memory_gib: int, samples: int = 4) -> List[str]:
    """Storage migration of disks one after another, then live memory."""
    texts = ["starting migration of VM 100 to node 'pve2' (10.0.0.2)", "starting storage migration"]
    for index, size in enumerate(disk_sizes_gib):
        for step in range(samples + 1):
            done = size * step / samples
            line = (
                f"drive-scsi{index}: transferred {done:.2f} GiB of {size:.2f} GiB "
                f"({100.0 * step / samples:.2f}%) in {10 * step}s"
            )
            texts.append(line + ", ready" if step == samples else line)
    texts.append("all 'mirror' jobs are ready")
    texts.append("starting online/live migration on unix:/run/qemu-server/100.migrate")
    for step in range(1, samples + 1):
        texts.append(
            f"migration active, transferred {memory_gib * step / samples:.2f} GiB of "
            f"{memory_gib:.2f} GiB VM-state, 512.0 MiB/s"
        )
    texts.append("migration status: completed")
    texts.append("migration finished successfully (duration 00:02:00)")
    texts.append("TASK OK")
    return texts


def make_lines(texts: List[str]) -> List[LogLine]:
    return [LogLine(sequence=n, text=text) for n, text in enumerate(texts, start=1)]


@pytest.fixture
def storage_log() -> List[LogLine]:
    return make_lines(STORAGE_MIGRATION_LOG)


@pytest.fixture
def live_log() -> List[LogLine]:
    return make_lines(LIVE_MIGRATION_LOG)


@pytest.fixture
def running_migration() -> TaskStatusSnapshot:
    return TaskStatusSnapshot(status="running", task_type="qmigrate", start_time=1000)


@pytest.fixture
def running_generic() -> TaskStatusSnapshot:
    return TaskStatusSnapshot(status="running", task_type="vzdump", start_time=1000)


@pytest.fixture(autouse=True)
def isolated_dirs(tmp_path, monkeypatch):
    """Point config and data directories at tmp_path and reset shared state."""
    monkeypatch.setenv("TASKPROGRESS_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.setenv("TASKPROGRESS_DATA_DIR", str(tmp_path / "data"))
    ConfigHandler.reset_instance()
    yield
    ConfigHandler.reset_instance()
    package_logger = logging.getLogger("taskprogress")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)
