"""
Task API Handler

Reads task status and task logs from the Proxmox VE API.
"""

import logging
from typing import Any, List, Optional
from urllib.parse import quote

import requests

from taskprogress import __version__
from taskprogress.backend.models.configuration import ConnectionSettings
from taskprogress.shared.progress_models import LogLine, TaskStatusSnapshot

logger = logging.getLogger(__name__)


class TaskApiHandler:
    """Thin client for the /nodes/{node}/tasks/{upid} endpoints."""

    def __init__(self, settings: ConnectionSettings, session: Optional[requests.Session] = None):
        """
        Initialize the API handler.

        Args:
            settings: Connection settings (base URL, token, TLS, paging limits)
            session: Optional pre-built session, mainly for tests
        """
        self.settings = settings
        self.session = session or requests.Session()
        self.session.headers.update({
            'Accept': 'application/json',
            'User-Agent': f'taskprogress/{__version__}',
        })
        auth_header = settings.auth_header
        if auth_header:
            self.session.headers['Authorization'] = auth_header
        self.session.verify = settings.verify_ssl

    def _task_url(self, node: str, upid: str, endpoint: str) -> str:
        return (
            f"{self.settings.api_root}/nodes/{quote(node, safe='')}"
            f"/tasks/{quote(upid, safe='')}/{endpoint}"
        )

    def _get_data(self, url: str, params: Optional[dict] = None) -> Any:
        """GET a resource and unwrap the API's {"data": ...} envelope."""
        response = self.session.get(url, params=params, timeout=self.settings.timeout)
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError(f"Unexpected response shape from {url}")
        return payload.get('data')

    def get_task_status(self, node: str, upid: str) -> Optional[TaskStatusSnapshot]:
        """
        Fetch the authoritative status of a task.

        Returns:
            TaskStatusSnapshot, or None if the status could not be read
        """
        url = self._task_url(node, upid, 'status')
        try:
            logger.debug(f"Fetching task status from {url}")
            data = self._get_data(url)
        except requests.RequestException as e:
            logger.error(f"Failed to fetch task status for {upid}: {e}")
            return None
        except ValueError as e:
            logger.error(f"Invalid task status response for {upid}: {e}")
            return None

        if not isinstance(data, dict):
            logger.error(f"Task status for {upid} has no data")
            return None

        status = TaskStatusSnapshot.from_api(data)
        if not status.upid:
            status.upid = upid
        if not status.node:
            status.node = node
        return status

    def get_task_log(self, node: str, upid: str) -> List[LogLine]:
        """
        Fetch the full task log in pages.

        Long migrations can produce hundreds of thousands of lines, so the log is
        read in batches of `log_batch_size` and capped at `max_log_lines`.
        A fetch failure is logged and whatever was read so far is returned
        (an empty list if nothing was read).
        """
        url = self._task_url(node, upid, 'log')
        batch_size = self.settings.log_batch_size
        max_lines = self.settings.max_log_lines
        lines: List[LogLine] = []
        start = 0

        try:
            while True:
                batch = self._get_data(url, params={'start': start, 'limit': batch_size})
                if not isinstance(batch, list) or not batch:
                    break
                lines.extend(LogLine.from_api(entry) for entry in batch if isinstance(entry, dict))

                if len(batch) < batch_size:
                    break
                start += len(batch)

                if len(lines) >= max_lines:
                    logger.warning(f"Task log for {upid} truncated at {max_lines} lines")
                    break
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Failed to fetch task log for {upid}: {e}")

        logger.debug(f"Read {len(lines)} log lines for {upid}")
        return lines[:max_lines]
