import logging
import os
import sys
from typing import Optional
from logging.handlers import RotatingFileHandler

from rich.console import Console
from rich.logging import RichHandler
from pythonjsonlogger import jsonlogger


def get_console_handler(level: int = logging.INFO) -> logging.Handler:
    """Get console handler with Rich formatting."""
    handler = RichHandler(
        console=Console(stderr=True, force_terminal=sys.stderr.isatty()),
        level=level,
        show_level=True,
        show_path=False,
        show_time=True,
        omit_repeated_times=True
    )
    handler.setLevel(level)
    return handler


def get_json_handler(level: int = logging.INFO, service: Optional[str] = None) -> logging.Handler:
    """Get JSON formatter handler."""
    handler = logging.StreamHandler(sys.stdout)
    formatter = jsonlogger.JsonFormatter(
        fmt='%(asctime)s %(name)s %(levelname)s %(message)s',
        datefmt='%Y-%m-%dT%H:%M:%S%z',
        static_fields={'service': service or 'unknown'}
    )
    handler.setFormatter(formatter)
    handler.setLevel(level)
    return handler


def get_file_handler(log_dir: str, service_name: str, level: int = logging.INFO) -> logging.Handler:
    """Get rotating file handler."""
    log_file = os.path.join(log_dir, f"{service_name}.log")
    os.makedirs(log_dir, exist_ok=True)
    handler = RotatingFileHandler(
        log_file, maxBytes=10*1024*1024, backupCount=5  # 10MB, 5 backups
    )
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    handler.setFormatter(formatter)
    handler.setLevel(level)
    return handler


def get_logger(name: str, service: Optional[str] = None, module: Optional[str] = None, log_dir: Optional[str] = None) -> logging.Logger:
    """Get configured logger with service/module extras."""
    logger = logging.getLogger(name)
    if logger.hasHandlers():
        logger.handlers.clear()  # Avoid duplicate handlers

    level = os.getenv("DRASH_LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, level, logging.INFO)
    use_json = os.getenv("DRASH_LOG_JSON", "0").lower() == "1"
    log_dir = log_dir or os.getenv("DRASH_LOG_DIR", "logs")

    logger.addHandler(get_console_handler(log_level))
    if use_json:
        logger.addHandler(get_json_handler(log_level, service))
    if os.getenv("DRASH_LOG_FILE", "1") != "0":
        logger.addHandler(get_file_handler(log_dir, service or name.split('.')[0], log_level))

    logger.setLevel(log_level)

    # Filter for modules if specified
    module_filter = os.getenv("DRASH_LOG_MODULES", "")
    if module_filter and module and module not in module_filter.split(','):
        class ModuleFilter(logging.Filter):
            def filter(self, record):
                return False
        logger.addFilter(ModuleFilter())

    class ExtrasProcessor(logging.Filter):
        def filter(self, record):
            if service:
                record.service = service
            if module:
                record.component = module
            return True
    logger.addFilter(ExtrasProcessor())

    # Suppress verbose logs from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return logger
