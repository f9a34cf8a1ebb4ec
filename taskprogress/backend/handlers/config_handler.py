#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Configuration Handler Module
Handles application settings and configuration
"""

import os
import json
import logging
from typing import Optional

from packaging import version

from taskprogress.backend.models.configuration import (
    ConnectionSettings,
    DEFAULT_LOG_BATCH_SIZE,
    DEFAULT_MAX_LOG_LINES,
)
from taskprogress.shared.paths import get_config_dir

# Initialize logger
logger = logging.getLogger(__name__)

CONFIG_VERSION = "0.2.0"


class ConfigHandler:
    """
    Handles application configuration and settings
    Singleton pattern ensures all code shares the same instance
    """
    _instance = None
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ConfigHandler, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        """Initialize configuration handler with default settings"""
        # Only initialize once (singleton pattern)
        if ConfigHandler._initialized:
            return
        ConfigHandler._initialized = True

        self.config_dir = str(get_config_dir())
        self.config_file = os.path.join(self.config_dir, "config.json")
        self.settings = self._default_settings()

        # Load configuration if exists
        self._load_config()

        # Perform version migrations
        self._migrate_config()

    @classmethod
    def reset_instance(cls):
        """Drop the shared instance so the next call re-reads the config directory."""
        cls._instance = None
        cls._initialized = False

    @staticmethod
    def _default_settings():
        return {
            "version": CONFIG_VERSION,
            "base_url": None,  # e.g. https://pve1.example.com:8006
            "api_token_id": None,  # user@realm!tokenid
            "api_token_secret": None,
            "verify_ssl": True,
            "timeout": 10,  # seconds per API request
            "log_batch_size": DEFAULT_LOG_BATCH_SIZE,  # lines per log page
            "max_log_lines": DEFAULT_MAX_LOG_LINES,  # safety cap when paging task logs
            "max_display_lines": 5000,  # log lines kept in a task detail
            "poll_interval": 2.0,  # seconds between refreshes in watch mode
            "migration_task_types": ["qmigrate", "vzmigrate"],
        }

    def _load_config(self):
        """
        Load configuration from file and update in-memory cache.
        """
        try:
            if os.path.exists(self.config_file):
                with open(self.config_file, 'r') as f:
                    saved_config = json.load(f)
                    # Update settings with saved values while preserving defaults
                    self.settings.update(saved_config)
                    logger.debug("Loaded configuration from file")
            else:
                logger.debug("No configuration file found, using defaults")
                self._create_config_dir()
        except (OSError, ValueError) as e:
            logger.error(f"Error loading configuration: {e}")

    def _migrate_config(self):
        """
        Migrate configuration between versions
        Handles breaking changes and data format updates
        """
        current_version = str(self.settings.get("version") or "0.0.0")
        target_version = CONFIG_VERSION

        if current_version == target_version:
            return

        try:
            outdated = version.parse(current_version) < version.parse(target_version)
        except version.InvalidVersion:
            logger.warning(f"Unrecognized config version '{current_version}', treating as outdated")
            outdated = True

        if not outdated:
            return

        logger.info(f"Migrating config from {current_version} to {target_version}")

        # Migration: v0.1.x -> v0.2.0
        # Separate host/port keys were folded into a single base_url
        host = self.settings.pop("host", None)
        port = self.settings.pop("port", None)
        if host and not self.settings.get("base_url"):
            self.settings["base_url"] = f"https://{host}:{port or 8006}"
            logger.info(f"Converted legacy host/port to base_url {self.settings['base_url']}")

        # Token was stored as a single "user@realm!id=secret" string
        legacy_token = self.settings.pop("api_token", None)
        if legacy_token and "=" in legacy_token and not self.settings.get("api_token_id"):
            token_id, secret = legacy_token.split("=", 1)
            self.settings["api_token_id"] = token_id
            self.settings["api_token_secret"] = secret
            logger.info("Split legacy api_token into api_token_id/api_token_secret")

        self.settings["version"] = target_version
        self.save_config()
        logger.info("Config migration completed")

    def _read_config_from_disk(self):
        """
        Read configuration directly from disk without caching.
        Returns merged config (in-memory settings + saved values).
        """
        try:
            config = self.settings.copy()
            if os.path.exists(self.config_file):
                with open(self.config_file, 'r') as f:
                    saved_config = json.load(f)
                    config.update(saved_config)
            return config
        except (OSError, ValueError) as e:
            logger.error(f"Error reading configuration from disk: {e}")
            return self.settings.copy()

    def reload_config(self):
        """Reload configuration from disk to pick up external changes"""
        self._load_config()

    def _create_config_dir(self):
        """Create configuration directory if it doesn't exist"""
        try:
            os.makedirs(self.config_dir, exist_ok=True)
            logger.debug(f"Created configuration directory: {self.config_dir}")
        except OSError as e:
            logger.error(f"Error creating configuration directory: {e}")

    def save_config(self):
        """Save current configuration to file"""
        try:
            self._create_config_dir()
            with open(self.config_file, 'w') as f:
                json.dump(self.settings, f, indent=2)
            logger.debug("Saved configuration to file")
            return True
        except (OSError, TypeError) as e:
            logger.error(f"Error saving configuration: {e}")
            return False

    def get(self, key, default=None):
        """
        Get a configuration value by key.
        Always reads fresh from disk to avoid stale data.
        """
        config = self._read_config_from_disk()
        return config.get(key, default)

    def get_all(self):
        """All settings, saved values over defaults, read fresh from disk"""
        return self._read_config_from_disk()

    def set(self, key, value):
        """Set a configuration value"""
        self.settings[key] = value
        return True

    def update(self, settings_dict):
        """Update multiple configuration values"""
        self.settings.update(settings_dict)
        return True

    def get_migration_task_types(self):
        """Task type identifiers handled by the migration parser"""
        types = self.get("migration_task_types") or []
        return [str(t) for t in types]

    def get_connection_settings(self) -> Optional[ConnectionSettings]:
        """
        Build connection settings from the current configuration

        Returns:
            ConnectionSettings, or None if no base_url is configured
        """
        config = self._read_config_from_disk()
        if not config.get("base_url"):
            logger.warning("No base_url configured")
            return None
        try:
            return ConnectionSettings.from_dict(config)
        except (TypeError, ValueError) as e:
            logger.error(f"Invalid connection settings: {e}")
            return None
