"""嵌套集合（Nested Set）树形结构模块

每个节点保存区间 [left, right] 与层级 level，祖先/子孙/子树查询都是一次区间比较。

主要组件:
- NestedSetMixin: 节点谓词、导航查询、插入、移动与删除子树
- NestedSetFieldsMixin / ScopedNestedSetFieldsMixin: 区间字段定义
- NestedSetQuery: 区间查询构造器
- configure_nested_set: 全局行为配置
- 工具函数: build_tree_list, flatten_tree

使用示例:
    from ynest.orm import CoreModel
    from ynest.orm.nested_set import NestedSetMixin, NestedSetFieldsMixin

    class Category(CoreModel, NestedSetFieldsMixin, NestedSetMixin):
        name: Mapped[str] = mapped_column(String(100))

    root = Category(name="root").make_root()
    root.save(commit=True)

    child = Category(name="child").insert_as_last_child_of(root)
    child.save(commit=True)

    child.move_to_prev_sibling_of(other)
    root.delete_descendants()
    tree = Category.get_tree_list()
"""

from .config import NestedSetConfig, configure_nested_set
from .exceptions import (
    NestedSetError,
    DuplicateRootError,
    InvalidRootMutationError,
    AlreadyInTreeError,
    NotInTreeError,
    CrossScopeError,
    CyclicMoveError,
    InvalidSiblingTargetError,
    RootDeletionError,
    NodeNotPersistedError,
)
from .fields import NestedSetFieldsMixin, ScopedNestedSetFieldsMixin
from .pending import PendingOperation, PendingOperationKind
from .query import NestedSetQuery
from .table import NestedSetTableMixin
from .mixin import NestedSetMixin
from .utils import build_tree_list, flatten_tree
from . import events  # noqa: F401  注册 flush 钩子

__all__ = [
    # Mixin 类
    "NestedSetMixin",
    "NestedSetTableMixin",
    "NestedSetFieldsMixin",
    "ScopedNestedSetFieldsMixin",

    # 查询与延迟操作
    "NestedSetQuery",
    "PendingOperation",
    "PendingOperationKind",

    # 配置
    "NestedSetConfig",
    "configure_nested_set",

    # 异常
    "NestedSetError",
    "DuplicateRootError",
    "InvalidRootMutationError",
    "AlreadyInTreeError",
    "NotInTreeError",
    "CrossScopeError",
    "CyclicMoveError",
    "InvalidSiblingTargetError",
    "RootDeletionError",
    "NodeNotPersistedError",

    # 工具函数
    "build_tree_list",
    "flatten_tree",
]
