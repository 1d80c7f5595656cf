"""Process logging: console plus a size-bounded rotating file."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path

from haunted_thread.core.settings import int_env, str_env

DEFAULT_LOG_PATH = Path("work/logs/haunted_thread.log")
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Chatty third-party loggers held at their own threshold.
_QUIET_LOGGERS = {
    "uvicorn.access": "HAUNTED_THREAD_ACCESS_LOG_LEVEL",
    "httpx": "HAUNTED_THREAD_HTTP_CLIENT_LOG_LEVEL",
}

_CONFIGURED = False


def _level(name: str, default: int) -> int:
    value = logging.getLevelName(name.strip().upper())
    return value if isinstance(value, int) else default


@dataclass(frozen=True)
class LoggingSettings:
    level: int = logging.INFO
    log_path: Path = DEFAULT_LOG_PATH
    max_bytes: int = 5 * 1024 * 1024
    backup_count: int = 10
    quiet_level: int = logging.WARNING

    @classmethod
    def from_env(cls) -> LoggingSettings:
        return cls(
            level=_level(os.environ.get("HAUNTED_THREAD_LOG_LEVEL", ""), logging.INFO),
            log_path=Path(str_env("HAUNTED_THREAD_LOG_PATH", str(DEFAULT_LOG_PATH))),
            max_bytes=int_env(
                "HAUNTED_THREAD_LOG_MAX_BYTES",
                5 * 1024 * 1024,
                minimum=64 * 1024,
                maximum=100 * 1024 * 1024,
            ),
            backup_count=int_env("HAUNTED_THREAD_LOG_BACKUP_COUNT", 10, minimum=1, maximum=120),
        )


def configure_runtime_logging(settings: LoggingSettings | None = None) -> bool:
    """Install the root handlers once per process; later calls are ignored.

    Returns True when this call did the installing.
    """
    global _CONFIGURED
    if _CONFIGURED:
        return False
    resolved = settings or LoggingSettings.from_env()

    resolved.log_path.parent.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z")
    handlers: list[logging.Handler] = [
        logging.StreamHandler(),
        RotatingFileHandler(
            filename=resolved.log_path,
            maxBytes=resolved.max_bytes,
            backupCount=resolved.backup_count,
            encoding="utf-8",
        ),
    ]
    root = logging.getLogger()
    root.setLevel(resolved.level)
    root.handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for logger_name, env_name in _QUIET_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(
            _level(os.environ.get(env_name, ""), resolved.quiet_level)
        )

    _CONFIGURED = True
    logging.getLogger(__name__).info(
        "logging.configured level=%s path=%s",
        logging.getLevelName(resolved.level),
        resolved.log_path,
    )
    return True
