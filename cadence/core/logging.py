"""
Cadence logging — terse console output plus one detailed log file per day.

Access tokens never reach a handler: every handler carries a filter that
masks bearer tokens and token-shaped JSON fields. Day files older than the
retention period are pruned at setup.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta
from pathlib import Path

LOGGER_NAME = "cadence"
LOG_FILE_PREFIX = "cadence_"

# httpx logs every request at INFO; keep our own lines readable
_NOISY_LOGGERS = ("httpx", "httpcore", "aiosqlite")

_SECRETS = re.compile(
    r"(Bearer\s+)[A-Za-z0-9._\-]+"
    r"|(\"?(?:accessToken|refreshToken|access_token|refresh_token)\"?\s*[:=]\s*\"?)[^\s\",}]+"
)


class RedactTokens(logging.Filter):
    """Mask bearer tokens and token fields in the rendered message."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _SECRETS.sub(lambda m: f"{m.group(1) or m.group(2)}***", message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(
    log_dir: Path | None = None,
    console_level: int = logging.WARNING,
    file_level: int = logging.DEBUG,
    retention_days: int = 14,
) -> logging.Logger:
    """
    Configure the "cadence" logger.

    Args:
        log_dir: Directory for day files (default: ~/.cadence/logs)
        console_level: Minimum level printed to stderr
        file_level: Minimum level written to the day file
        retention_days: Day files older than this are deleted; 0 keeps all

    Returns:
        The configured logger
    """
    log_dir = (log_dir or (Path.home() / ".cadence" / "logs")).expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(min(console_level, file_level))
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    redact = RedactTokens()

    console = logging.StreamHandler()
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter("%(levelname).1s %(message)s"))
    console.addFilter(redact)
    logger.addHandler(console)

    log_file = log_dir / f"{LOG_FILE_PREFIX}{datetime.now():%Y%m%d}.log"
    day_file = logging.FileHandler(log_file, encoding="utf-8")
    day_file.setLevel(file_level)
    day_file.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)-7s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    day_file.addFilter(redact)
    logger.addHandler(day_file)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    pruned = prune_logs(log_dir, retention_days) if retention_days > 0 else 0
    logger.debug(f"Logging to {log_file} ({pruned} old file(s) pruned)")
    return logger


def prune_logs(log_dir: Path, retention_days: int, today: datetime | None = None) -> int:
    """Delete day files older than retention_days. Returns how many were removed."""
    cutoff = (today or datetime.now()).date() - timedelta(days=retention_days)
    removed = 0
    for path in log_dir.glob(f"{LOG_FILE_PREFIX}*.log"):
        stamp = path.stem[len(LOG_FILE_PREFIX):]
        try:
            day = datetime.strptime(stamp, "%Y%m%d").date()
        except ValueError:
            continue
        if day < cutoff:
            path.unlink(missing_ok=True)
            removed += 1
    return removed
