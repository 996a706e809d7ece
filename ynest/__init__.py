"""
ynest - SQLAlchemy 嵌套集合树形结构引擎

提供嵌套集合模型 Mixin、事务管理、配置与日志等基础功能
"""

from .version import __version__, __author__, __description__

# 导出配置模块
from .config import (
    AppSettings,
    DatabaseSettings,
    LoggingSettings,
    NestedSetSettings,
    load_yaml_config,
)

# 导出日志模块
from .log import (
    setup_logger,
    get_logger,
)

# 导出 ORM 模块
from .orm import (
    Base,
    CoreModel,
    init_database,
    db_session_scope,
    transaction_manager,
    NestedSetMixin,
    NestedSetFieldsMixin,
    ScopedNestedSetFieldsMixin,
    NestedSetQuery,
    configure_nested_set,
    NestedSetError,
)

__all__ = [
    "__version__",
    "__author__",
    "__description__",
    "AppSettings",
    "DatabaseSettings",
    "LoggingSettings",
    "NestedSetSettings",
    "load_yaml_config",
    "setup_logger",
    "get_logger",
    "Base",
    "CoreModel",
    "init_database",
    "db_session_scope",
    "transaction_manager",
    "NestedSetMixin",
    "NestedSetFieldsMixin",
    "ScopedNestedSetFieldsMixin",
    "NestedSetQuery",
    "configure_nested_set",
    "NestedSetError",
]
