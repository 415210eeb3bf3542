"""
Logging setup shared by the CLI and the build-step service.

The CLI logs job progress through a Rich console when attached to a terminal;
the service writes plain lines tagged with the request ID.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from aip_console_tools.config import settings

JOB_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
SERVICE_FORMAT = "%(asctime)s - %(levelname)s - [%(request_id)s] - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"

# Levels forced on third-party loggers whatever the application level
LIBRARY_LEVELS = {
    "aiohttp": logging.WARNING,
    "boto3": logging.WARNING,
    "botocore": logging.WARNING,
    "uvicorn": logging.INFO,
    "uvicorn.access": logging.WARNING,
    "fastapi": logging.INFO,
}


class RequestIDFilter(logging.Filter):
    """Give every record a request ID so the service format always resolves."""

    def filter(self, record):
        if not hasattr(record, "request_id"):
            record.request_id = "-"
        return True


def _stream_handler(console: Optional[Console], include_request_id: bool) -> logging.Handler:
    if console is not None and console.is_terminal:
        return RichHandler(console=console, show_path=False, markup=False, rich_tracebacks=True)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(SERVICE_FORMAT if include_request_id else JOB_FORMAT))
    return handler


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[Path] = None,
    include_request_id: bool = False,
    console: Optional[Console] = None,
) -> None:
    """
    Configure the root logger.

    Args:
        level: Logging level name; defaults to the configured one
        log_file: Extra file output; defaults to the configured ``log_file``
        include_request_id: Tag lines with the HTTP request ID (build-step service)
        console: Rich console used for interactive CLI output
    """
    log_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)
    if log_file is None and settings.log_file:
        log_file = Path(settings.log_file)

    handlers = [_stream_handler(console, include_request_id)]
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)
    for handler in handlers:
        handler.setLevel(log_level)
        if include_request_id:
            handler.addFilter(RequestIDFilter())
        root_logger.addHandler(handler)

    for name, library_level in LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(library_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
