"""JSON logging for the service."""

import logging

from pythonjsonlogger import jsonlogger

FORMAT = '%(asctime)s %(levelname)s %(name)s %(message)s'


def setup_logger(level: int = logging.INFO) -> None:
    """Attach a JSON handler to the root logger, once."""
    logger = logging.getLogger()
    logger.setLevel(level)
    for handler in logger.handlers:
        if isinstance(handler.formatter, jsonlogger.JsonFormatter):
            return
    logHandler = logging.StreamHandler()
    formatter = jsonlogger.JsonFormatter(
        FORMAT, rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
    )
    logHandler.setFormatter(formatter)
    logger.addHandler(logHandler)
