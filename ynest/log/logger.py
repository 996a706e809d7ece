"""
日志工具模块

get_logger() 按模块名取日志器，setup_logger() 给日志器挂上控制台或滚动文件输出。
树引擎的日志都在 ynest.orm 下：区间平移在 ynest.orm.nested_set（DEBUG），
移动和删除子树为 INFO，回滚为 WARNING。
"""

import inspect
import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Any

DEFAULT_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(filename)s:%(lineno)d - %(message)s"

DEFAULT_MAX_BYTES = 10 * 1024 * 1024


def setup_logger(
    name: str = None,
    level: str = "INFO",
    log_file: str = None,
    console: bool = True,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = 5,
    log_format: str = None,
    propagate: bool = True,
    config: Any = None,
) -> logging.Logger:
    """配置并返回日志记录器

    重复调用会替换已有的处理器，不会叠加。

    Args:
        name: 日志记录器名称，None 表示根日志器
        level: 日志级别，无法识别时使用 INFO
        log_file: 日志文件路径，为空则不写文件（按 max_bytes 滚动）
        console: 是否输出到控制台
        max_bytes: 单个日志文件最大字节数
        backup_count: 保留的滚动文件数量
        log_format: 日志格式，默认 DEFAULT_LOG_FORMAT
        propagate: 是否传播到父日志器
        config: LoggingSettings，提供时覆盖 level/log_file/console/max_bytes/backup_count

    使用示例:
        from ynest.log import setup_logger

        setup_logger("ynest.orm.nested_set", level="DEBUG")
        setup_logger(config=settings.logging)
    """
    if config is not None:
        level = config.level
        log_file = config.file_path or None
        console = config.enable_console
        max_bytes = config.parsed_file_max_bytes
        backup_count = config.file_backup_count

    _logger = logging.getLogger(name)
    _logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    _logger.propagate = propagate

    _logger.handlers.clear()

    formatter = logging.Formatter(log_format or DEFAULT_LOG_FORMAT)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        _logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        _logger.addHandler(file_handler)

    return _logger


def get_logger(name: str = None) -> logging.Logger:
    """获取日志记录器

    - 不传 name: 使用调用方模块的 __name__
    - 不含点号的简写: 自动加 ynest. 前缀，如 "orm" -> "ynest.orm"
    - 其他名称原样使用

    使用示例:
        logger = get_logger()                     # 调用模块名
        logger = get_logger("orm")                # ynest.orm
        logger = get_logger("sqlalchemy.engine")  # sqlalchemy.engine
    """
    if name is None:
        frame = inspect.currentframe()
        caller = frame.f_back if frame is not None else None
        name = caller.f_globals.get("__name__", "ynest") if caller is not None else "ynest"
    elif name != "ynest" and "." not in name:
        name = f"ynest.{name}"
    return logging.getLogger(name)
