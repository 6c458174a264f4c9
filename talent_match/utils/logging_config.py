"""
Centralized Logging Configuration for the Talent Match service
"""
import functools
import inspect
import logging
import logging.config
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional


LOGGER_PREFIX = "talent_match"

FORMATS = {
    "simple": "%(levelname)s - %(name)s - %(message)s",
    "detailed": "%(asctime)s | %(levelname)-8s | %(name)-40s | %(funcName)-24s:%(lineno)-4d | %(message)s",
    "json": '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "function": "%(funcName)s", "line": %(lineno)d, "message": "%(message)s"}'
}


def setup_logging(
    level: str = "INFO",
    log_dir: str = "logs",
    enable_console: bool = True,
    enable_file: bool = True,
    format_style: str = "detailed"
) -> None:
    """
    Setup centralized logging configuration

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for the rotating log files
        enable_console: Enable console logging
        enable_file: Enable file logging (main log plus an errors-only log)
        format_style: Format style ('simple', 'detailed', 'json')
    """
    stamp = datetime.now().strftime('%Y%m%d')
    log_path = Path(log_dir)

    config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "detailed": {
                "format": FORMATS.get(format_style, FORMATS["detailed"]),
                "datefmt": "%Y-%m-%d %H:%M:%S"
            },
            "simple": {
                "format": FORMATS["simple"]
            }
        },
        "handlers": {},
        "loggers": {
            "": {
                "level": level,
                "handlers": [],
                "propagate": False
            },
            "uvicorn": {
                "level": "INFO",
                "handlers": [],
                "propagate": False
            },
            # motor/pymongo heartbeat chatter
            "pymongo": {
                "level": "WARNING",
                "handlers": [],
                "propagate": True
            },
        }
    }

    if enable_console:
        config["handlers"]["console"] = {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": "simple" if format_style == "simple" else "detailed",
            "stream": "ext://sys.stdout"
        }
        config["loggers"][""]["handlers"].append("console")
        config["loggers"]["uvicorn"]["handlers"].append("console")

    if enable_file:
        log_path.mkdir(parents=True, exist_ok=True)
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": level,
            "formatter": "detailed",
            "filename": str(log_path / f"talent_match_{stamp}.log"),
            "maxBytes": 10485760,  # 10MB
            "backupCount": 5,
            "encoding": "utf8"
        }
        config["handlers"]["error_file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": "ERROR",
            "formatter": "detailed",
            "filename": str(log_path / f"talent_match_errors_{stamp}.log"),
            "maxBytes": 10485760,
            "backupCount": 5,
            "encoding": "utf8"
        }
        config["loggers"][""]["handlers"].extend(["file", "error_file"])
        config["loggers"]["uvicorn"]["handlers"].append("file")

    logging.config.dictConfig(config)

    logger = logging.getLogger(f"{LOGGER_PREFIX}.logging")
    logger.info(f"Logging configured - Level: {level}, Console: {enable_console}, File: {enable_file}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the service namespace

    Args:
        name: Logger name (usually __name__)
    """
    if name.startswith(LOGGER_PREFIX):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")


def log_function_call(func):
    """
    Decorator to log entry, duration and failures of a sync or async call
    """
    logger = get_logger(func.__module__)

    @functools.wraps(func)
    async def async_wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        logger.debug(f"Entering {func.__name__} with args={len(args)}, kwargs={list(kwargs.keys())}")
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            logger.error(f"Error in {func.__name__} after {time.perf_counter() - start_time:.3f}s: {e}")
            raise
        logger.debug(f"Completed {func.__name__} in {time.perf_counter() - start_time:.3f}s")
        return result

    @functools.wraps(func)
    def sync_wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        logger.debug(f"Entering {func.__name__} with args={len(args)}, kwargs={list(kwargs.keys())}")
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            logger.error(f"Error in {func.__name__} after {time.perf_counter() - start_time:.3f}s: {e}")
            raise
        logger.debug(f"Completed {func.__name__} in {time.perf_counter() - start_time:.3f}s")
        return result

    if inspect.iscoroutinefunction(func):
        return async_wrapper
    return sync_wrapper


def configure_for_environment():
    """Configure logging based on ENVIRONMENT / LOG_LEVEL / LOG_DIR"""
    environment = os.getenv("ENVIRONMENT", "development").lower()
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    log_dir = os.getenv("LOG_DIR", "logs")

    if environment == "production":
        setup_logging(level=log_level, log_dir=log_dir, format_style="json")
    elif environment == "development":
        setup_logging(level="DEBUG", log_dir=log_dir)
    elif environment == "testing":
        setup_logging(level="WARNING", enable_file=False, format_style="simple")
    else:
        setup_logging(level=log_level, log_dir=log_dir)


class PerformanceMonitor:
    """Context manager that logs how long an operation took"""

    def __init__(self, operation_name: str, logger: Optional[logging.Logger] = None, threshold_ms: float = 1000):
        self.operation_name = operation_name
        self.logger = logger or get_logger("performance")
        self.threshold_ms = threshold_ms
        self.start_time = None
        self.elapsed_ms = 0.0

    def __enter__(self):
        self.start_time = time.perf_counter()
        self.logger.debug(f"Starting {self.operation_name}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed_ms = (time.perf_counter() - self.start_time) * 1000

        if exc_type is not None:
            self.logger.error(f"{self.operation_name} failed after {self.elapsed_ms:.2f}ms: {exc_val}")
        elif self.elapsed_ms > self.threshold_ms:
            self.logger.warning(
                f"{self.operation_name} completed in {self.elapsed_ms:.2f}ms (exceeded threshold {self.threshold_ms}ms)"
            )
        else:
            self.logger.info(f"{self.operation_name} completed in {self.elapsed_ms:.2f}ms")
        return False
