"""
Logging setup for webrender.

`setup_logging()` configures the root logger from the ``logging`` section of
the configuration (console and rotating-file handlers). `get_logger()` hands
out module loggers and makes sure some configuration is in place first, so it
is safe to call at import time.
"""
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional, Dict, Any, TYPE_CHECKING

if TYPE_CHECKING:
    from webrender.core.config import ConfigurationManager

# Relative log file paths are resolved against the repository root.
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(funcName)s - %(message)s"
DEFAULT_LOG_PATH = "logs/webrender.log"

_logging_initialized = False


def setup_logging(config: Optional['ConfigurationManager'] = None) -> None:
    """
    Configures the root logger from application settings.

    Falls back to `logging.basicConfig` when no configuration is available or
    the ``logging`` section is missing. Calling it again is a no-op.

    Args:
        config (Optional[ConfigurationManager]): Configuration to read. When None
            the global `config_manager` is used.
    """
    global _logging_initialized
    if _logging_initialized:
        logging.getLogger(__name__).debug("setup_logging: already initialized.")
        return

    current_config = config
    if current_config is None:
        from webrender.core.config import config_manager as global_config_manager
        current_config = global_config_manager

    log_settings: Dict[str, Any] = current_config.section("logging") if current_config else {}

    if not log_settings:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        logging.warning("Logging setup: 'logging' section not found in configuration. Using basicConfig.")
        _logging_initialized = True
        return

    log_level_str = str(log_settings.get("level", "INFO")).upper()
    log_level = getattr(logging, log_level_str, logging.INFO)
    log_format = log_settings.get("format", DEFAULT_LOG_FORMAT)

    root_logger = logging.getLogger()
    # Drop handlers installed by basicConfig or a previous setup.
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.setLevel(log_level)
    formatter = logging.Formatter(log_format)

    handlers = log_settings.get("handlers", {}) or {}

    console_settings = handlers.get("console", {}) or {}
    if console_settings.get("enabled", False):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    file_settings = handlers.get("file", {}) or {}
    log_file_path = None
    if file_settings.get("enabled", False):
        log_file_path = os.path.join(PROJECT_ROOT, file_settings.get("path", DEFAULT_LOG_PATH))
        max_bytes = int(file_settings.get("max_bytes", 10 * 1024 * 1024))
        backup_count = int(file_settings.get("backup_count", 5))
        try:
            os.makedirs(os.path.dirname(log_file_path), exist_ok=True)
            file_handler = RotatingFileHandler(
                filename=log_file_path,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding='utf-8'
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
        except OSError as e:
            logging.error(f"Logging setup: Failed to configure file logging at '{log_file_path}': {e}. File logging disabled.", exc_info=True)
            log_file_path = None

    _logging_initialized = True
    logging.info(f"Logging system initialized. Level: {log_level_str}.")
    if log_file_path:
        logging.debug(f"File logging handler enabled at path: {log_file_path}")


def get_logger(name: str) -> logging.Logger:
    """
    Returns the logger called `name`, running `setup_logging()` first if
    nothing has configured logging yet.
    """
    if not _logging_initialized:
        setup_logging()
    return logging.getLogger(name)
