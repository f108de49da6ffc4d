import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_logger = logging.getLogger("spotify_mini")


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Configure stderr logging (plus an optional file).

    stdout is left alone: the status mode prints its JSON there.
    """
    lvl = getattr(logging, str(level or "INFO").upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        try:
            handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
        except OSError as e:
            print(f"Cannot open log file {log_file}: {e}", file=sys.stderr)

    logging.basicConfig(level=lvl, format=LOG_FORMAT, handlers=handlers, force=True)


def log_debug(message: str) -> None:
    _logger.debug(message)


def log_info(message: str) -> None:
    _logger.info(message)


def log_success(message: str) -> None:
    _logger.info(f"✅ {message}")


def log_warning(message: str) -> None:
    _logger.warning(message)


def log_error(message: str) -> None:
    _logger.error(message)
