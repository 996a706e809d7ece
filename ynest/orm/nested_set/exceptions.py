"""嵌套集合异常定义

所有异常都是调用方违反树操作契约时抛出的业务错误，校验在任何写库操作之前完成。
"""

from typing import Any, Optional


class NestedSetError(Exception):
    """嵌套集合错误基类"""
    pass


class DuplicateRootError(NestedSetError):
    """同一棵树（同一 scope）中已存在根节点"""

    def __init__(self, scope: Any = None, use_scope: bool = False):
        self.scope = scope
        if use_scope:
            message = f"scope={scope!r} 的树已存在根节点"
        else:
            message = "树已存在根节点"
        super().__init__(message)


class InvalidRootMutationError(NestedSetError):
    """对已有树坐标的节点调用 make_root()"""

    def __init__(self, node: Any = None):
        self.node = node
        super().__init__("不能把已有的节点转换为根节点")


class AlreadyInTreeError(NestedSetError):
    """对已在树中的节点调用 insert_as_*()，应改用对应的 move_to_*()"""

    def __init__(self, method: str, move_method: str):
        self.method = method
        self.move_method = move_method
        super().__init__(
            f"节点已在树中，不能调用 {method}()，请使用 {move_method}()"
        )


class NotInTreeError(NestedSetError):
    """节点尚未进入树"""

    def __init__(self, method: str, message: Optional[str] = None):
        self.method = method
        super().__init__(message or f"节点不在树中，不能调用 {method}()")


class CrossScopeError(NestedSetError):
    """在不同 scope 的节点之间比较或移动"""

    def __init__(self, scope: Any, other_scope: Any, action: str = "比较"):
        self.scope = scope
        self.other_scope = other_scope
        self.action = action
        super().__init__(
            f"不支持跨树{action}节点: scope={scope!r} 与 scope={other_scope!r}"
        )


class CyclicMoveError(NestedSetError):
    """把节点移动到自己的子树中"""

    def __init__(self, method: str):
        self.method = method
        super().__init__(f"{method}(): 不能把节点移动到它自己的子树中")


class InvalidSiblingTargetError(NestedSetError):
    """以根节点为参照做兄弟定位，根节点之前或之后不存在兄弟位置"""

    def __init__(self, method: str):
        self.method = method
        super().__init__(f"{method}(): 不能相对根节点定位兄弟节点")


class RootDeletionError(NestedSetError):
    """直接删除根节点，应改用 delete_tree()"""

    def __init__(self, scope: Any = None):
        self.scope = scope
        super().__init__("不能直接删除根节点，请使用 delete_tree() 删除整棵树")


class NodeNotPersistedError(NestedSetError):
    """参照节点尚未保存

    add_child() 的父节点是新节点，或 insert_as_*() 的参照节点不在任何会话中。
    """

    def __init__(self, method: str = "add_child"):
        self.method = method
        super().__init__(f"{method}(): 参照节点尚未保存，请先 save() 或加入会话")


__all__ = [
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
]
