"""延迟执行的树操作

insert_as_*() 不会立即写库，而是在节点上登记一条“腾出位置”记录，
等节点所在的 flush 开始时（before_flush）统一执行，然后清空队列。
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class PendingOperationKind(str, Enum):
    """延迟操作类型"""

    MAKE_ROOM_FOR_LEAF = "make_room_for_leaf"
    """在 left 处为一个新叶子节点腾出 2 个单位的区间"""


@dataclass(frozen=True)
class PendingOperation:
    """一条延迟执行的树操作

    Attributes:
        kind: 操作类型
        left: 新叶子节点的左值
        scope: 所在树的 scope（未启用 scope 时为 None）
        exclude_id: 不参与平移的节点 ID（节点原地重新入树时为它自己）
    """

    kind: PendingOperationKind
    left: int
    scope: Any = None
    exclude_id: Optional[Any] = None

    def execute(self, model_class, session) -> int:
        """执行操作，返回受影响的行数"""
        if self.kind == PendingOperationKind.MAKE_ROOM_FOR_LEAF:
            return model_class.make_room_for_leaf(
                self.left,
                scope=self.scope,
                exclude=self.exclude_id,
                session=session,
            )
        raise ValueError(f"未知的延迟操作类型: {self.kind}")
