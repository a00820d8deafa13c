"""JSON logging configuration for snapshot-insight."""

import logging

from pythonjsonlogger import jsonlogger

LOG_FORMAT = "%(timestamp)s %(levelname)s %(funcName)s %(lineno)d %(message)s"
ALLOWED_FIELDS = frozenset({"timestamp", "level", "message", "exc_info", "funcName", "lineno"})


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that emits only ALLOWED_FIELDS, with levelname renamed to level."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        if "levelname" in log_record:
            log_record["level"] = log_record.pop("levelname")

        for key in [key for key in log_record if key not in ALLOWED_FIELDS]:
            del log_record[key]


def setup_logger(name: str = "snapshot_insight", level: int = logging.INFO) -> logging.Logger:
    """Initialize and configure a JSON stream logger.

    Calling again with the same name reuses the existing handler and only
    updates the level, so scripts can raise verbosity after import.

    Args:
        name: Logger name
        level: Logging level

    Returns:
        Configured logger with CustomJsonFormatter
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Prevent duplicate handlers if module reloaded
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(CustomJsonFormatter(fmt=LOG_FORMAT, timestamp=True))

    logger.addHandler(handler)
    logger.propagate = False

    return logger


# Default logger for components constructed without an explicit one
LOGGER = setup_logger()
