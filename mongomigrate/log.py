import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def parse_level(level: Union[str, int, None]) -> int:
    if isinstance(level, int):
        return level
    if not level:
        return logging.INFO
    return _LEVELS.get(level.strip().lower(), logging.INFO)


def setup_logging(level: Union[str, int, None] = "info",
                  log_dir: Optional[Union[str, Path]] = "logs") -> Optional[Path]:
    """
    Configure the root logger for a CLI or API run.

    Args:
        level: level name from LOG_LEVEL (debug, info, warn, error) or a logging constant
        log_dir: directory for the per-run log file, None to log to the console only

    Returns:
        path of the log file, or None
    """
    handlers = [logging.StreamHandler()]
    log_file = None
    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = log_dir / f"migration-{datetime.now().strftime('%Y%m%d-%H%M%S')}.log"
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        level=parse_level(level),
        handlers=handlers,
        force=True,
    )
    # driver heartbeat chatter
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    return log_file
