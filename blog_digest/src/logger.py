import logging
import os
import sys
from datetime import datetime
from pathlib import Path

from .constants import EnvVars, LocalPaths

LOGGER_NAME = "blog_digest"
TRUTHY_VALUES = {"1", "true", "yes"}


class LoggerConfig:
    """Logging setup for the engine; stdout stays free for CLI output."""

    def __init__(
        self,
        level: int = logging.INFO,
        log_format: str = "%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        logs_dir: Path | None = None,
    ):
        self.level = level
        self.log_format = log_format
        self.logs_dir = logs_dir

    @classmethod
    def from_env(cls) -> "LoggerConfig":
        level_name = os.getenv(EnvVars.LOG_LEVEL.value, "INFO").upper()
        logs_dir = None
        if os.getenv(EnvVars.LOG_TO_FILE.value, "").lower() in TRUTHY_VALUES:
            logs_dir = Path(os.getenv(EnvVars.LOG_DIR.value, LocalPaths.LOGS_DIR.value))
        return cls(level=getattr(logging, level_name, logging.INFO), logs_dir=logs_dir)


def _daily_log_file(logs_dir: Path) -> Path:
    name, ext = LocalPaths.LOGS_FILE.value.rsplit(".", 1)
    return logs_dir / f"{name}_{datetime.now():%Y-%m-%d}.{ext}"


def configure_logger(config: LoggerConfig) -> logging.Logger:
    logger_obj = logging.getLogger(LOGGER_NAME)
    logger_obj.setLevel(config.level)
    logger_obj.handlers.clear()
    formatter = logging.Formatter(config.log_format)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logger_obj.addHandler(console_handler)

    if config.logs_dir is not None:
        config.logs_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(
            _daily_log_file(config.logs_dir), encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        logger_obj.addHandler(file_handler)

    logger_obj.propagate = False
    return logger_obj


def set_log_level(level_name: str) -> None:
    logger.setLevel(getattr(logging, level_name.upper(), logging.INFO))


logger = configure_logger(LoggerConfig.from_env())
