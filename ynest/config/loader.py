"""YAML 配置加载

使用示例:
    from ynest.config import AppSettings, load_yaml, load_yaml_config

    raw = load_yaml("config/settings.yaml")
    settings = load_yaml_config("config/settings.yaml", AppSettings, nested_set={"log_shifts": True})
"""

import copy
import os
from typing import Any, Dict, Optional, Type, TypeVar

import yaml

SettingsT = TypeVar("SettingsT")


def load_yaml(config_path: str, base_dir: Optional[str] = None) -> Dict[str, Any]:
    """读取 YAML 文件，空文件返回空字典

    Args:
        config_path: 文件路径，相对路径基于 base_dir（默认当前目录）解析

    Raises:
        FileNotFoundError: 文件不存在
        yaml.YAMLError: YAML 语法错误
    """
    if not os.path.isabs(config_path):
        config_path = os.path.join(base_dir or os.getcwd(), config_path)
    if not os.path.isfile(config_path):
        raise FileNotFoundError(f"配置文件不存在: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def merge_sections(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """合并配置，两边都是字典的键递归合并，其余以 overrides 为准；不修改入参"""
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_sections(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_yaml_config(
    config_path: str,
    settings_class: Type[SettingsT],
    base_dir: Optional[str] = None,
    **overrides,
) -> SettingsT:
    """读取 YAML 并创建配置对象

    overrides 按配置段合并：nested_set={"log_shifts": True} 只覆盖该字段，
    同一段中的其他字段仍取文件里的值。
    """
    data = merge_sections(load_yaml(config_path, base_dir), overrides)
    return settings_class(**data)
