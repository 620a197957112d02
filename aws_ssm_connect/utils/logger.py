import json
import logging
import os
import sys
from enum import Enum

# Parent logger for the whole package
PARENT_LOGGER = "aws_ssm_connect"


class LogFormat(str, Enum):
    text = "text"
    json = "json"


# --- Formatters ---
class JSONFormatter(logging.Formatter):
    """Outputs logs as one JSON object per line."""

    def format(self, record):
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "location": f"{record.pathname}:{record.lineno}",
            "service": os.environ.get("SERVICE_NAME", "aws-ssm-connect"),
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_record)


class HumanReadableFormatter(logging.Formatter):
    """Outputs logs as clean text for CLI users."""

    def format(self, record):
        return f"[{record.levelname}] {record.getMessage()}"


# --- Internal Helper ---
def _configure_handler(logger_instance, fmt_type):
    """Clears existing handlers and adds the correct one."""
    for h in logger_instance.handlers[:]:
        logger_instance.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    if fmt_type == LogFormat.json.value:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(HumanReadableFormatter())

    logger_instance.addHandler(handler)
    # Keep records away from the root logger to avoid duplicates
    logger_instance.propagate = False


# --- Public API ---
def get_logger(name: str):
    """
    Returns a logger for the specific module.
    Ensures the PARENT logger is configured once.
    """
    logger = logging.getLogger(name)

    parent_logger = logging.getLogger(PARENT_LOGGER)
    if not parent_logger.handlers:
        default_fmt = os.environ.get("LOG_FORMAT", LogFormat.text.value).lower()
        _configure_handler(parent_logger, default_fmt)
        parent_logger.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())

    return logger


def set_log_format(fmt_type: str):
    """
    Reconfigures ONLY the parent logger.
    Child loggers bubble up to this one.
    """
    fmt_type = fmt_type.lower()
    os.environ["LOG_FORMAT"] = fmt_type

    parent_logger = logging.getLogger(PARENT_LOGGER)
    _configure_handler(parent_logger, fmt_type)
    parent_logger.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())
