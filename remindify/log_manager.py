"""Application-wide logging set up from a small configuration."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

LOGGER_NAME = "remindify"
LOG_NAME_BASE = "remindify"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.ERROR,
}

_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


@dataclass
class LoggingConfig:
    """Where and how much to log."""

    level: str = "info"
    console_output: bool = True
    file_output: bool = True
    log_dir: str = "./Logs/"


def convert_log_level(level: str) -> int:
    """Map a level name to a logging level; unknown names give INFO."""
    return _LEVELS.get(level, logging.INFO)


class LogManager:
    """Owns the handlers of the application logger."""

    def __init__(self, config: LoggingConfig) -> None:
        self.config = config
        self._logger = logging.getLogger(LOGGER_NAME)
        self._logger.propagate = False
        self._file_path = ""

    def _remove_handlers(self) -> None:
        for handler in list(self._logger.handlers):
            self._logger.removeHandler(handler)
            handler.close()
        self._file_path = ""

    def initialize(self) -> None:
        """Install console and file handlers according to the configuration."""
        self._remove_handlers()
        self._logger.setLevel(convert_log_level(self.config.level))
        formatter = logging.Formatter(_FORMAT)

        if self.config.console_output:
            console = logging.StreamHandler()
            console.setFormatter(formatter)
            self._logger.addHandler(console)

        if self.config.file_output:
            log_dir = self.config.log_dir or "."
            os.makedirs(log_dir, exist_ok=True)
            file_handler = logging.FileHandler(
                os.path.join(log_dir, f"{LOG_NAME_BASE}.log"), encoding="utf-8"
            )
            file_handler.setFormatter(formatter)
            self._logger.addHandler(file_handler)
            self._file_path = file_handler.baseFilename

    def _enabled(self) -> bool:
        return self.config.file_output or self.config.console_output

    def debug(self, msg: str, *args: object) -> None:
        if self._enabled():
            self._logger.debug(msg, *args)

    def info(self, msg: str, *args: object) -> None:
        if self._enabled():
            self._logger.info(msg, *args)

    def warning(self, msg: str, *args: object) -> None:
        if self._enabled():
            self._logger.warning(msg, *args)

    def error(self, msg: str, *args: object) -> None:
        if self._enabled():
            self._logger.error(msg, *args)

    def critical(self, msg: str, *args: object) -> None:
        if self._enabled():
            self._logger.critical(msg, *args)

    def is_debug_enabled(self) -> bool:
        """Return whether the configured level is debug."""
        return self.config.level == "debug"

    def update_config(self, config: LoggingConfig) -> None:
        """Replace the configuration and reinstall the handlers."""
        self.config = config
        self.initialize()

    def get_log_file_path(self) -> str:
        """Return the current log file path, or an empty string without one."""
        return self._file_path


_instance: LogManager | None = None


def get_instance() -> LogManager:
    """Return the shared manager, creating one with default settings if needed."""
    global _instance
    if _instance is None:
        _instance = LogManager(LoggingConfig())
        _instance.initialize()
    return _instance


def initialize(config: LoggingConfig) -> LogManager:
    """Create the shared manager from a configuration and set it up."""
    global _instance
    _instance = LogManager(config)
    _instance.initialize()
    return _instance