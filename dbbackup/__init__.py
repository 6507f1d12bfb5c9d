import os
import logging
from logging.handlers import RotatingFileHandler


__version__ = '1.1.0'


def configure_logging(debug=False, log_dir=None):
    """Configure application logging"""

    # Set log level based on mode
    log_level = logging.DEBUG if debug else logging.INFO

    handlers = []

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_formatter = logging.Formatter(
        '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'
    )
    console_handler.setFormatter(console_formatter)
    handlers.append(console_handler)

    # File handler (only when a log directory is configured)
    file_error = None
    if log_dir:
        try:
            os.makedirs(log_dir, exist_ok=True)
            file_handler = RotatingFileHandler(
                os.path.join(log_dir, 'dbbackup.log'),
                maxBytes=10485760,  # 10MB
                backupCount=10
            )
        except OSError as e:
            file_error = e
        else:
            file_handler.setLevel(log_level)
            file_formatter = logging.Formatter(
                '[%(asctime)s] %(levelname)s [%(name)s.%(funcName)s:%(lineno)d] %(message)s'
            )
            file_handler.setFormatter(file_formatter)
            handlers.append(file_handler)

    # Configure root logger
    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    logger = logging.getLogger('dbbackup')
    logger.setLevel(log_level)
    if file_error:
        logger.warning(f"File logging disabled, cannot use log directory {log_dir}: {file_error}")
    logger.info(f"Logging configured (level: {logging.getLevelName(log_level)})")

    return logger
