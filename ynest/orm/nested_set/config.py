"""
嵌套集合全局配置管理

使用类变量存储全局配置，可直接传入 NestedSetSettings（pydantic-settings）。
"""

from typing import Optional

from ynest.config import NestedSetSettings


class NestedSetConfig:
    """嵌套集合全局配置类

    - refresh_loaded_nodes: 批量平移后让会话中已加载的节点过期
    - log_shifts: 以 DEBUG 级别记录每一次区间平移
    """

    _refresh_loaded_nodes: bool = True
    _log_shifts: bool = False

    @classmethod
    def configure(
        cls,
        settings: Optional[NestedSetSettings] = None,
        refresh_loaded_nodes: Optional[bool] = None,
        log_shifts: Optional[bool] = None
    ):
        """配置嵌套集合行为

        关键字参数优先于 settings 对象中的值。

        Raises:
            ValueError: 参数类型不正确
        """
        if settings is not None:
            cls._refresh_loaded_nodes = settings.refresh_loaded_nodes
            cls._log_shifts = settings.log_shifts

        if refresh_loaded_nodes is not None:
            if not isinstance(refresh_loaded_nodes, bool):
                raise ValueError(f"refresh_loaded_nodes 必须是 bool，当前值: {refresh_loaded_nodes!r}")
            cls._refresh_loaded_nodes = refresh_loaded_nodes

        if log_shifts is not None:
            if not isinstance(log_shifts, bool):
                raise ValueError(f"log_shifts 必须是 bool，当前值: {log_shifts!r}")
            cls._log_shifts = log_shifts

    @classmethod
    def refresh_loaded_nodes(cls) -> bool:
        return cls._refresh_loaded_nodes

    @classmethod
    def log_shifts(cls) -> bool:
        return cls._log_shifts

    @classmethod
    def reset(cls):
        """重置为默认配置（主要用于测试）"""
        cls._refresh_loaded_nodes = True
        cls._log_shifts = False


def configure_nested_set(
    settings: Optional[NestedSetSettings] = None,
    refresh_loaded_nodes: Optional[bool] = None,
    log_shifts: Optional[bool] = None
):
    """配置嵌套集合行为（便捷函数）

    Examples:
        >>> from ynest.orm.nested_set import configure_nested_set
        >>> configure_nested_set(log_shifts=True)
        >>> configure_nested_set(settings.nested_set)
    """
    NestedSetConfig.configure(
        settings=settings,
        refresh_loaded_nodes=refresh_loaded_nodes,
        log_shifts=log_shifts,
    )
