"""Rich console logging for the CLI, the admin API and scripts.

Call setup_logging() once at process start; modules take their logger from
get_logger() at import time.
"""

import logging
from typing import Optional

from rich.logging import RichHandler
from .config import get_settings

# Third-party loggers that flood INFO with one line per request.
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "trafilatura", "urllib3")


def setup_logging(level: Optional[str] = None):
    logging.basicConfig(
        level=(level or get_settings().LOG_LEVEL).upper(),
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"policai.{name}")
