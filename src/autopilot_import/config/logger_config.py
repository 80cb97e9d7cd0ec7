"""Logger configuration for the import client."""

import sys

from loguru import logger

from .settings import ImportConfig


def setup_logging(config: ImportConfig) -> None:
    """Configure loguru for console and daily file output.

    The file sink writes to one log per calendar day inside the working
    directory. Old files are pruned by the detection routine, not by loguru.
    """

    # Remove default loguru handler
    logger.remove()

    if config.log_to_console:
        logger.add(
            sink=sys.stderr,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
            level=config.log_level,
            colorize=True,
        )

    config.work_dir.mkdir(parents=True, exist_ok=True)
    log_file = config.log_file_path()
    logger.add(
        sink=str(log_file),
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
        level=config.log_level,
        encoding="utf-8",
    )

    logger.debug(f"File logging enabled: {log_file}")
    logger.debug(f"Log level: {config.log_level}")
