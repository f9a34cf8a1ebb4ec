from typing import List, Optional

import pytest

from conftest import STORAGE_MIGRATION_LOG, make_lines
from taskprogress.backend.services.task_progress_service import TaskProgressService
from taskprogress.shared.progress_models import LogLine, TaskStatusSnapshot

UPID = "UPID:pve1:00001234:00ABCDEF:65000000:qmigrate:100:root@pam:"


class FakeApiHandler:
    """Stands in for TaskApiHandler with canned responses."""

    def __init__(self, status: Optional[TaskStatusSnapshot], logs: List[LogLine]):
        self.status = status
        self.logs = logs
        self.calls = []

    def get_task_status(self, node, upid):
        self.calls.append(("status", node, upid))
        return self.status

    def get_task_log(self, node, upid):
        self.calls.append(("log", node, upid))
        return self.logs


def running_status(**overrides) -> TaskStatusSnapshot:
    values = {"status": "running", "task_type": "qmigrate", "start_time": 1000, "task_id": "100", "user": "root@pam"}
    values.update(overrides)
    return TaskStatusSnapshot(**values)


def test_running_migration_detail() -> None:
    api = FakeApiHandler(running_status(), make_lines(STORAGE_MIGRATION_LOG[:7]))
    detail = TaskProgressService(api).get_task_detail("pve1", UPID, now=1090)

    assert detail.is_running
    assert detail.duration_sec == 90
    assert detail.duration == "1m 30s"
    assert detail.report.percent == 47.5
    assert detail.report.eta == "1m 20s"
    assert detail.total_log_lines == 7
    assert api.calls == [("status", "pve1", UPID), ("log", "pve1", UPID)]


def test_stopped_task_uses_end_time() -> None:
    status = running_status(status="stopped", exit_status="OK", end_time=1200)
    detail = TaskProgressService(FakeApiHandler(status, [])).get_task_detail("pve1", UPID, now=5000)

    assert not detail.is_running
    assert detail.duration_sec == 200
    assert detail.duration == "3m 20s"
    assert detail.report.percent == 100.0
    assert detail.report.message == "Completed successfully"


def test_missing_start_time_gives_zero_duration() -> None:
    status = running_status(start_time=None)
    detail = TaskProgressService(FakeApiHandler(status, [])).get_task_detail("pve1", UPID, now=1500)
    assert detail.duration_sec == 0
    assert detail.duration == "0s"


def test_unreadable_status_returns_none() -> None:
    api = FakeApiHandler(None, make_lines(["TASK OK"]))
    assert TaskProgressService(api).get_task_detail("pve1", UPID) is None
    assert api.calls == [("status", "pve1", UPID)]


def test_empty_log_gives_default_report() -> None:
    detail = TaskProgressService(FakeApiHandler(running_status(), [])).get_task_detail("pve1", UPID, now=1001)
    assert detail.report.percent == 0.0
    assert detail.report.message == "Starting…"
    assert detail.logs == []


def test_log_tail_is_limited() -> None:
    logs = make_lines([f"line {n}" for n in range(10)])
    service = TaskProgressService(FakeApiHandler(running_status(task_type="vzdump"), logs), max_display_lines=3)
    detail = service.get_task_detail("pve1", UPID, now=1001)
    assert [line.text for line in detail.logs] == ["line 7", "line 8", "line 9"]
    assert detail.total_log_lines == 10


def test_custom_migration_types() -> None:
    status = running_status(task_type="qmremote")
    lines = make_lines(["drive-scsi0: transferred 50.0 GiB of 100.0 GiB (50.00%) in 100s"])
    assert TaskProgressService(None, migration_types=["qmremote"]).progress_from_lines(status, lines).percent == 47.5
    assert TaskProgressService(None).progress_from_lines(status, lines).percent == 50.0


def test_detail_to_dict() -> None:
    api = FakeApiHandler(running_status(), make_lines(STORAGE_MIGRATION_LOG[:2]))
    data = TaskProgressService(api).get_task_detail("pve1", UPID, now=1010).to_dict()

    assert data["upid"] == UPID
    assert data["node"] == "pve1"
    assert data["type"] == "qmigrate"
    assert data["id"] == "100"
    assert data["user"] == "root@pam"
    assert data["status"] == "running"
    assert data["exitstatus"] is None
    assert data["starttime"] == 1000
    assert data["endtime"] is None
    assert data["duration"] == "10s"
    assert data["durationSec"] == 10
    assert data["totalLogLines"] == 2
    assert data["logs"][0] == {"n": 1, "t": STORAGE_MIGRATION_LOG[0]}
    assert data["message"] == "starting migration…"
    assert data["percent"] == pytest.approx(0.0)
