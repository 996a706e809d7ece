"""嵌套集合字段 Mixin

提供嵌套集合所需的区间字段定义，配合 NestedSetMixin 使用。

使用示例:
    from ynest.orm import CoreModel
    from ynest.orm.nested_set import NestedSetMixin, NestedSetFieldsMixin

    class Category(CoreModel, NestedSetFieldsMixin, NestedSetMixin):
        name: Mapped[str] = mapped_column(String(100))

    # 一张表存放多棵树时使用 ScopedNestedSetFieldsMixin
    class Menu(CoreModel, ScopedNestedSetFieldsMixin, NestedSetMixin):
        title: Mapped[str] = mapped_column(String(100))
"""

from typing import ClassVar, Optional

from sqlalchemy import Integer
from sqlalchemy.orm import Mapped, mapped_column


class NestedSetFieldsMixin:
    """嵌套集合字段 Mixin

    提供字段：
        - left: 区间左值，未进入树时为 None
        - right: 区间右值，未进入树时为 None
        - level: 层级，根节点为 0
    """

    __nested_set_use_scope__: ClassVar[bool] = False

    left: Mapped[Optional[int]] = mapped_column(
        "tree_left",
        Integer,
        nullable=True,
        index=True,
        comment="区间左值"
    )

    right: Mapped[Optional[int]] = mapped_column(
        "tree_right",
        Integer,
        nullable=True,
        index=True,
        comment="区间右值"
    )

    level: Mapped[Optional[int]] = mapped_column(
        "tree_level",
        Integer,
        nullable=True,
        comment="层级（根节点为0）"
    )


class ScopedNestedSetFieldsMixin(NestedSetFieldsMixin):
    """带 scope 的嵌套集合字段 Mixin

    scope 把一张表划分为多棵互相独立的树，所有区间比较都限定在同一 scope 内。
    """

    __nested_set_use_scope__: ClassVar[bool] = True

    scope: Mapped[Optional[int]] = mapped_column(
        "tree_scope",
        Integer,
        nullable=True,
        index=True,
        comment="树标识"
    )


__all__ = ["NestedSetFieldsMixin", "ScopedNestedSetFieldsMixin"]
