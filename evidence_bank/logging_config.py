"""
Logging setup for the evidence bank.

Modules log through ``logging.getLogger(__name__)``; the CLI calls
setup_logging() once to install a console handler with either JSON
or plain formatting.
"""

import logging
import sys

from pythonjsonlogger.json import JsonFormatter

SERVICE_NAME = "evidence-bank"


class ServiceJsonFormatter(JsonFormatter):
    """JSON formatter that stamps every record with standard fields."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["name"] = record.name
        log_record["service"] = SERVICE_NAME
        if "message" not in log_record:
            log_record["message"] = record.getMessage()


def setup_logging(level=logging.INFO, format_as_json=False):
    """
    Configure the root logger with a single stderr handler.

    Args:
        level: Logging level or level name.
        format_as_json: Use JSON lines instead of the plain text format.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    # stderr keeps command output on stdout clean
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    if format_as_json:
        formatter = ServiceJsonFormatter(
            "%(timestamp)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
