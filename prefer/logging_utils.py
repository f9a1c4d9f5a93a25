from loguru import logger
import os
import sys
import time
from typing import Optional
from contextlib import contextmanager

from .settings import get_settings


def setup_logging(log_file: Optional[str] = None, log_level: Optional[str] = None):
    """Configure loguru sinks for applications embedding prefer.

    The library itself never touches sinks; call this from the application.
    """
    # LOGURU_LEVEL wins over the argument and over PREFER_LOG_LEVEL
    env_log_level = os.environ.get('LOGURU_LEVEL')
    if env_log_level:
        log_level = env_log_level.upper()
    elif log_level is None:
        log_level = get_settings().log_level

    logger.remove()
    logger.enable("prefer")

    console_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        "<level>{message}</level>"
    )
    file_format = (
        "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | "
        "{name}:{function}:{line} | {message}"
    )

    logger.add(
        sys.stderr,
        level=log_level,
        format=console_format,
        colorize=True
    )

    if not log_file:
        return logger

    os.makedirs(os.path.dirname(log_file) or '.', exist_ok=True)

    def _add_file_sink(path: str, *, level: str, rotation: str, retention: str, compression: Optional[str] = None):
        sink_kwargs = dict(
            level=level,
            format=file_format,
            rotation=rotation,
            retention=retention,
            compression=compression,
            encoding="utf-8",
            enqueue=True,
            backtrace=True,
            diagnose=False,
        )
        try:
            logger.add(path, **sink_kwargs)
        except (PermissionError, OSError) as exc:
            sink_kwargs["enqueue"] = False
            logger.warning(
                f"Failed to enable async logging for {path} ({exc}); falling back to synchronous writes."
            )
            logger.add(path, **sink_kwargs)

    _add_file_sink(
        log_file,
        level=log_level,
        rotation="10 MB",
        retention="14 days",
        compression="zip",
    )

    root, ext = os.path.splitext(log_file)
    _add_file_sink(
        f"{root}_error{ext or '.log'}",
        level="ERROR",
        rotation="10 MB",
        retention="30 days",
    )

    return logger


@contextmanager
def log_operation(operation_name: str, **context):
    """Log start, completion time and failure of an operation."""
    start_time = time.perf_counter()
    bound = logger.bind(**context)
    bound.debug(f"Starting operation: {operation_name}")

    try:
        yield
    except Exception as e:
        execution_time = time.perf_counter() - start_time
        bound.warning(f"Operation failed: {operation_name} after {execution_time:.3f}s: {e}")
        raise
    execution_time = time.perf_counter() - start_time
    bound.debug(f"Operation completed: {operation_name} in {execution_time:.3f}s")
