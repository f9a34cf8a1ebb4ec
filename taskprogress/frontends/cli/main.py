#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
taskprogress CLI Frontend - Main Entry Point

Command-line interface that shows reconstructed progress for cluster tasks,
either live from the API or from a saved task log.
"""

import argparse
import json
import logging
import sys
import time
from pathlib import Path

from taskprogress import __version__
from taskprogress.backend.handlers.config_handler import ConfigHandler
from taskprogress.backend.handlers.logging_handler import LoggingHandler
from taskprogress.backend.handlers.task_api_handler import TaskApiHandler
from taskprogress.backend.services.task_progress_service import TaskProgressService
from taskprogress.shared.progress_models import LogLine, TaskStatusSnapshot

logger = logging.getLogger(__name__)

CLI_LOG_FILE = "taskprogress-cli.log"
DEFAULT_MAX_DISPLAY_LINES = 5000


class TaskProgressCLI:
    """Main application class for the taskprogress CLI frontend"""

    def __init__(self, stdout=None, stderr=None):
        self.stdout = stdout or sys.stdout
        self.stderr = stderr or sys.stderr
        self.config_handler = ConfigHandler()
        self.args = None
        self.parser = self._build_parser()

        # Configure logging to be quiet by default - will be adjusted after arg parsing
        self._configure_logging_early()

    def _configure_logging_early(self):
        """Keep the root logger quiet until arguments are parsed"""
        logging.getLogger().setLevel(logging.WARNING)

    def _configure_logging_final(self):
        """Configure final logging level based on parsed arguments"""
        logging_handler = LoggingHandler()
        logging_handler.rotate_log_for_logger(CLI_LOG_FILE)
        cli_logger = logging_handler.setup_logger('taskprogress', CLI_LOG_FILE)

        if self.args.debug:
            cli_logger.setLevel(logging.DEBUG)
        elif self.args.verbose:
            cli_logger.setLevel(logging.INFO)
        else:
            cli_logger.setLevel(logging.WARNING)

    def _build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="taskprogress",
            description="Show progress of Proxmox VE tasks reconstructed from their logs",
        )
        parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")
        parser.add_argument('--debug', action='store_true', help="Enable debug logging")
        parser.add_argument('--verbose', '-v', action='store_true', help="Enable info logging")

        subparsers = parser.add_subparsers(dest='command', required=True)

        show = subparsers.add_parser('show', help="Fetch a task from the cluster and show its progress")
        show.add_argument('node', help="Node the task runs on")
        show.add_argument('upid', help="Task UPID")
        show.add_argument('--watch', action='store_true', help="Refresh until the task stops")
        show.add_argument('--interval', type=float, default=None, help="Seconds between refreshes")
        show.add_argument('--json', action='store_true', help="Print the task detail as JSON")

        parse = subparsers.add_parser('parse', help="Reconstruct progress from a saved task log")
        parse.add_argument('logfile', type=Path, help="Task log file, one log line per line")
        parse.add_argument('--task-type', default='qmigrate', help="Task type identifier (default: qmigrate)")
        parse.add_argument('--status', default='running', help="Task status (default: running)")
        parse.add_argument('--exit-status', default=None, help="Exit status for stopped tasks")
        parse.add_argument('--json', action='store_true', help="Print the report as JSON")

        config = subparsers.add_parser('config', help="Show or change settings")
        config_sub = config.add_subparsers(dest='config_command', required=True)
        config_sub.add_parser('show', help="Print current settings")
        config_set = config_sub.add_parser('set', help="Set a value")
        config_set.add_argument('key')
        config_set.add_argument('value', help="JSON literal or plain string")

        return parser

    def _print(self, text: str = ""):
        print(text, file=self.stdout)

    def _error(self, text: str):
        print(f"Error: {text}", file=self.stderr)

    def _build_service(self):
        settings = self.config_handler.get_connection_settings()
        if settings is None:
            return None
        max_display_lines = self.config_handler.get("max_display_lines")
        if max_display_lines is None:
            max_display_lines = DEFAULT_MAX_DISPLAY_LINES
        return TaskProgressService(
            TaskApiHandler(settings),
            migration_types=self.config_handler.get_migration_task_types(),
            max_display_lines=max_display_lines,
        )

    def run_show(self) -> int:
        """Fetch a task and print its progress, optionally until it stops"""
        service = self._build_service()
        if service is None:
            self._error("no cluster connection configured (set base_url, api_token_id, api_token_secret)")
            return 1

        interval = self.args.interval
        if interval is None:
            interval = float(self.config_handler.get("poll_interval", 2.0))

        try:
            while True:
                detail = service.get_task_detail(self.args.node, self.args.upid)
                if detail is None:
                    self._error(f"could not read status of task {self.args.upid}")
                    return 1

                if self.args.json:
                    self._print(json.dumps(detail.to_dict(), indent=2, ensure_ascii=False))
                else:
                    self._print(f"[{detail.status} {detail.duration}] {detail.report.display_text}")

                if not self.args.watch or not detail.is_running:
                    return 0
                time.sleep(max(0.1, interval))
        except KeyboardInterrupt:
            logger.info("Watch interrupted by user")
            return 0

    def run_parse(self) -> int:
        """Reconstruct progress from a saved task log"""
        try:
            with open(self.args.logfile, 'r', encoding='utf-8', errors='replace') as f:
                lines = [LogLine(sequence=n, text=text.rstrip('\n')) for n, text in enumerate(f, start=1)]
        except OSError as e:
            self._error(f"cannot read {self.args.logfile}: {e}")
            return 1

        status = TaskStatusSnapshot(
            status=self.args.status,
            task_type=self.args.task_type,
            exit_status=self.args.exit_status,
        )
        service = TaskProgressService(
            api_handler=None,
            migration_types=self.config_handler.get_migration_task_types(),
        )
        report = service.progress_from_lines(status, lines)
        logger.info(f"Parsed {len(lines)} lines from {self.args.logfile}")

        if self.args.json:
            self._print(json.dumps(report.to_dict(), ensure_ascii=False))
        else:
            self._print(report.display_text)
        return 0

    def run_config(self) -> int:
        """Show or change settings"""
        if self.args.config_command == 'show':
            config = self.config_handler.get_all()
            if config.get("api_token_secret"):
                config["api_token_secret"] = "***"
            self._print(json.dumps(config, indent=2))
            return 0

        try:
            value = json.loads(self.args.value)
        except ValueError:
            value = self.args.value
        self.config_handler.set(self.args.key, value)
        if not self.config_handler.save_config():
            self._error("failed to save configuration")
            return 1
        self._print(f"{self.args.key} updated")
        return 0

    def run(self, argv=None) -> int:
        """Parse arguments and dispatch to the selected command"""
        self.args = self.parser.parse_args(argv)
        self._configure_logging_final()

        handlers = {
            'show': self.run_show,
            'parse': self.run_parse,
            'config': self.run_config,
        }
        return handlers[self.args.command]()


def main(argv=None) -> int:
    """Main entry point for the CLI frontend"""
    cli = TaskProgressCLI()
    return cli.run(argv)


if __name__ == "__main__":
    sys.exit(main())
