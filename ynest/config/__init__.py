"""配置模块

提供配置管理功能：
- AppSettings: 应用基础配置，支持 YAML + 环境变量
- 子配置类: DatabaseSettings, LoggingSettings, NestedSetSettings
- load_yaml / load_yaml_config: 读取 YAML 并创建配置对象

快速开始:
    from ynest.config import AppSettings, load_yaml_config

    settings = load_yaml_config("config/settings.yaml", AppSettings)
"""

from .settings import (
    AppSettings,
    DatabaseSettings,
    LoggingSettings,
    NestedSetSettings,
    parse_file_size,
)

from .loader import (
    load_yaml,
    load_yaml_config,
    merge_sections,
)

__all__ = [
    "AppSettings",
    "DatabaseSettings",
    "LoggingSettings",
    "NestedSetSettings",
    "parse_file_size",
    "load_yaml",
    "load_yaml_config",
    "merge_sections",
]
