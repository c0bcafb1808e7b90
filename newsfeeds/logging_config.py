"""Logging for the newsfeeds commands.

Only the `newsfeeds` logger tree is configured: scheduler, storage and CLI
messages go to a dated file in the logs directory, and a short form goes to
stderr so `pending` can keep stdout for the crawler's JSON.
"""
import logging
import logging.handlers
from datetime import date, datetime, timedelta
from pathlib import Path

LOGGER_NAME = 'newsfeeds'
LOG_PREFIX = 'newsfeeds-'
LOG_FILE_FORMAT = '%(asctime)s.%(msecs)03d [%(levelname)s] %(name)s: %(message)s'
LOG_CONSOLE_FORMAT = '[%(asctime)s] %(levelname)s %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def log_file_for(log_dir: Path, day: date) -> Path:
    return log_dir / f"{LOG_PREFIX}{day.strftime('%Y-%m-%d')}.log"


def _file_handler(log_file: Path, retention_days: int) -> logging.Handler:
    handler = logging.handlers.TimedRotatingFileHandler(
        filename=log_file,
        when='midnight',
        interval=1,
        backupCount=retention_days,
        encoding='utf-8',
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(LOG_FILE_FORMAT, datefmt=LOG_DATE_FORMAT))
    return handler


def _console_handler(verbose: bool) -> logging.Handler:
    handler = logging.StreamHandler()  # stderr
    handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    handler.setFormatter(logging.Formatter(LOG_CONSOLE_FORMAT, datefmt='%H:%M:%S'))
    return handler


def setup_logging(log_dir: Path, retention_days: int = 30, verbose: bool = False) -> logging.Logger:
    """Attach file and console handlers to the newsfeeds logger.

    Calling it again replaces the handlers, so repeated CLI invocations in
    one process do not duplicate lines.

    Args:
        log_dir: Directory for newsfeeds-YYYY-MM-DD.log files (created if missing)
        retention_days: Days of log files to keep
        verbose: Also show DEBUG output on the console

    Returns:
        The configured `newsfeeds` logger
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    removed = cleanup_old_logs(log_dir, retention_days)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    log_file = log_file_for(log_dir, datetime.now().date())
    logger.addHandler(_file_handler(log_file, retention_days))
    logger.addHandler(_console_handler(verbose))

    if removed:
        logger.debug(f"Removed {removed} log files older than {retention_days} days")
    return logger


def cleanup_old_logs(log_dir: Path, retention_days: int) -> int:
    """Delete newsfeeds log files older than retention_days.

    Returns the number of files removed.
    """
    if not log_dir.exists():
        return 0

    cutoff = datetime.now().date() - timedelta(days=retention_days)
    removed = 0
    for log_file in log_dir.glob(f'{LOG_PREFIX}*.log'):
        try:
            day = datetime.strptime(log_file.stem.removeprefix(LOG_PREFIX), '%Y-%m-%d').date()
        except ValueError:
            continue
        if day < cutoff:
            try:
                log_file.unlink()
            except FileNotFoundError:
                continue
            removed += 1
    return removed
