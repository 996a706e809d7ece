"""
配置模块

数据库、日志与嵌套集合的默认配置，业务项目可以继承 AppSettings 并覆盖
"""

import re
from typing import Union

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


_SIZE_UNITS = {"B": 1, "KB": 1024, "MB": 1024 ** 2, "GB": 1024 ** 3}


def parse_file_size(size: Union[str, int, float]) -> int:
    """把 "10MB"、"512KB" 之类的大小转换为字节数，单位不区分大小写

    >>> parse_file_size("1.5KB")
    1536
    """
    if isinstance(size, (int, float)):
        return int(size)

    match = re.fullmatch(r"(\d+(?:\.\d+)?)\s*([KMG]?B)?", str(size).strip().upper())
    if match is None:
        raise ValueError(f"无效的文件大小格式: {size}")
    number, unit = match.groups()
    return int(float(number) * _SIZE_UNITS[unit or "B"])


class DatabaseSettings(BaseSettings):
    """数据库配置（环境变量前缀 YNEST_DB_）"""
    model_config = SettingsConfigDict(env_prefix="YNEST_DB_")

    url: str = Field(default="", description="数据库连接URL")
    echo: bool = Field(default=False, description="是否打印SQL语句")


class LoggingSettings(BaseSettings):
    """日志配置（环境变量前缀 YNEST_LOG_）

    使用示例:
        setup_logger(config=LoggingSettings(level="DEBUG", file_path="logs/tree.log"))
    """
    model_config = SettingsConfigDict(env_prefix="YNEST_LOG_")

    level: str = Field(default="INFO", description="日志级别")
    file_path: str = Field(default="", description="日志文件路径，为空则不写文件")
    file_max_bytes: str = Field(default="10MB", description="单个日志文件最大大小")
    file_backup_count: int = Field(default=5, description="保留的滚动文件数量")
    enable_console: bool = Field(default=True, description="是否输出到控制台")

    @computed_field
    @property
    def parsed_file_max_bytes(self) -> int:
        return parse_file_size(self.file_max_bytes)


class NestedSetSettings(BaseSettings):
    """嵌套集合配置（环境变量前缀 YNEST_NESTED_SET_）

    使用示例:
        configure_nested_set(NestedSetSettings(log_shifts=True))
    """
    model_config = SettingsConfigDict(env_prefix="YNEST_NESTED_SET_")

    refresh_loaded_nodes: bool = Field(
        default=True,
        description="批量平移后是否让会话中已加载的节点过期，以便下次访问时重新读取",
    )
    log_shifts: bool = Field(default=False, description="是否以 DEBUG 级别记录每一次区间平移")


class AppSettings(BaseSettings):
    """应用配置

    直接构造时读取环境变量；通过 load_yaml_config() 创建时使用 YAML 中的值。

    YAML 示例:
        database:
          url: "sqlite:///./tree.db"
        logging:
          level: "DEBUG"
        nested_set:
          log_shifts: true
    """
    database: DatabaseSettings = DatabaseSettings()
    logging: LoggingSettings = LoggingSettings()
    nested_set: NestedSetSettings = NestedSetSettings()
