"""日志模块

使用示例:
    from ynest.log import setup_logger, get_logger

    setup_logger(level="DEBUG")
    logger = get_logger()
"""

from .logger import (
    DEFAULT_LOG_FORMAT,
    setup_logger,
    get_logger,
)

__all__ = [
    "DEFAULT_LOG_FORMAT",
    "setup_logger",
    "get_logger",
]
