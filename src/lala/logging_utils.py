"""
Logging setup for the evidence pipeline and the lala-audit CLI.

Handlers go on the 'lala' package logger, which stops propagating, so the
root logger of an application embedding the pipeline is left alone. Log
records are written to stderr; stdout carries command output such as
``show-version --json``.
"""

import logging
import logging.handlers
import sys
from typing import List, Optional, Tuple

from lala.config import LalaConfig


PACKAGE_LOGGER = 'lala'
HANDLER_NAME = 'lala-audit'
LOG_FORMAT = '[%(asctime)s] %(levelname)s [%(name)s] %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def _build_handlers(log_file: Optional[str]) -> Tuple[List[logging.Handler], Optional[OSError]]:
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    handlers = [console]
    error = None

    if log_file:
        try:
            handlers.append(logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding='utf-8',
            ))
        except OSError as e:
            error = e

    for handler in handlers:
        handler.set_name(HANDLER_NAME)
        handler.setFormatter(formatter)
    return handlers, error


def setup_logging(config: Optional[LalaConfig] = None, log_file: Optional[str] = None,
                  verbose: Optional[bool] = None) -> logging.Logger:
    """
    Attach console and optional rotating-file handlers to the 'lala' logger.

    Explicit arguments win over the values in config. Calling this again
    replaces the handlers of the previous call.

    Args:
        config: Settings providing logging.file and logging.verbose
        log_file: Path of a rotating log file (None = console only)
        verbose: DEBUG instead of INFO

    Returns:
        The configured 'lala' logger
    """
    if log_file is None and config is not None:
        log_file = config.log_file
    if verbose is None:
        verbose = config.verbose if config is not None else False

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(package_logger.handlers):
        if handler.get_name() == HANDLER_NAME:
            package_logger.removeHandler(handler)
            handler.close()

    handlers, file_error = _build_handlers(log_file)
    for handler in handlers:
        package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    package_logger.propagate = False

    # Statement echo would drown the pipeline's own records
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

    if file_error is not None:
        logging.getLogger(__name__).warning(f"Could not create log file {log_file}: {file_error}")

    return package_logger
