import logging
import logging.handlers
import os
import sys
from typing import Optional

from google_search.config.settings import LOG_DIR, LOG_FILE_NAME, LOG_LEVEL

LOG_FORMAT = '%(asctime)s - %(levelname)s - [%(name)s] - %(message)s'


def setup_logging(level: Optional[str] = None, log_dir: Optional[str] = None) -> logging.Logger:
    """Configure the package logger with a stderr console handler and a rotating log file.

    stdout is left untouched because the CLI prints JSON there and the MCP server
    speaks its protocol over it. Calling this more than once does not duplicate handlers.

    Args:
        level: Console log level name; defaults to LOG_LEVEL from settings.
        log_dir: Directory for the rotating log file; defaults to LOG_DIR from settings.

    Returns:
        The configured ``google_search`` logger.
    """
    level_str = (level or LOG_LEVEL or "INFO").upper()
    log_level = getattr(logging, level_str, logging.INFO)

    logger = logging.getLogger("google_search")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    if not any(isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler) for h in logger.handlers):
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(console_handler)
    for handler in logger.handlers:
        if not isinstance(handler, logging.FileHandler):
            handler.setLevel(log_level)

    if not any(isinstance(h, logging.handlers.RotatingFileHandler) for h in logger.handlers):
        target_dir = log_dir or LOG_DIR
        try:
            os.makedirs(target_dir, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                os.path.join(target_dir, LOG_FILE_NAME), maxBytes=5*1024*1024, backupCount=5, encoding="utf-8"
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"Could not create log file in {target_dir}: {e}")

    logger.debug(f"Logging level set to: {level_str} ({log_level})")
    return logger
