"""
Loguru sink configuration.
"""

import sys

from loguru import logger

from swingtrader.config.settings import LoggingConfig

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def configure_logging(config: LoggingConfig) -> list[int]:
    """Replace loguru's sinks with the configured ones.

    Args:
        config: Logging settings

    Returns:
        Ids of the installed sinks
    """
    logger.remove()
    sink_ids = [
        logger.add(
            sys.stderr,
            level=config.level,
            format=CONSOLE_FORMAT,
            serialize=config.serialize,
            backtrace=False,
            diagnose=False,
        )
    ]
    if config.file_path is not None:
        sink_ids.append(
            logger.add(
                config.file_path,
                level=config.level,
                rotation=config.rotation,
                retention=config.retention,
                serialize=True,
                enqueue=True,
            )
        )
    logger.debug(f"Logging configured at level {config.level} with {len(sink_ids)} sink(s)")
    return sink_ids
