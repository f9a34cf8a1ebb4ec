"""
Path helpers for taskprogress data and config directories.
"""

import os
from pathlib import Path


def get_config_dir() -> Path:
    """Config directory: $TASKPROGRESS_CONFIG_DIR or ~/.config/taskprogress."""
    override = os.environ.get("TASKPROGRESS_CONFIG_DIR")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "taskprogress"


def get_data_dir() -> Path:
    """Data directory: $TASKPROGRESS_DATA_DIR or ~/.local/share/taskprogress."""
    override = os.environ.get("TASKPROGRESS_DATA_DIR")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".local" / "share" / "taskprogress"


def get_logs_dir() -> Path:
    return get_data_dir() / "logs"
