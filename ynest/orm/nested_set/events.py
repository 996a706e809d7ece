"""嵌套集合持久化钩子

通过 SQLAlchemy 事件实现保存前与删除前后的树维护：

- before_flush:
    1. 新根节点：检查同一 scope 中是否已有根节点
    2. 删除根节点：拒绝，应使用 delete_tree()
    3. 执行节点上登记的延迟操作（为新叶子节点腾出区间）
    4. 删除非根节点：先删除子孙，再收拢节点自身留下的 2 个单位空隙
- expire / refresh: 清空节点的父节点与子节点缓存

导入 ynest.orm.nested_set 时自动注册。
"""

from typing import Any, List, Set, Tuple

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from ynest.log import get_logger

from .exceptions import DuplicateRootError, RootDeletionError
from .mixin import NestedSetMixin

logger = get_logger("ynest.orm.nested_set")


def _nested_set_nodes(objects) -> List[NestedSetMixin]:
    return [obj for obj in objects if isinstance(obj, NestedSetMixin)]


def _check_new_roots(session: Session, new_nodes: List[NestedSetMixin]):
    """同一 scope 只允许一个根节点（包括本次 flush 中的多个新根节点）"""
    seen: Set[Tuple[type, Any]] = set()
    for node in new_nodes:
        if not node.is_root():
            continue
        cls = node.__class__
        scope = node.get_scope_value()
        key = (cls, scope)
        if key in seen:
            raise DuplicateRootError(scope, cls.__nested_set_use_scope__)
        existing = cls.nested_set_query(session).tree_roots().in_tree(scope).count()
        if existing > 0:
            raise DuplicateRootError(scope, cls.__nested_set_use_scope__)
        seen.add(key)


def _check_deleted_roots(deleted_nodes: List[NestedSetMixin]):
    for node in deleted_nodes:
        if node.is_root():
            raise RootDeletionError(node.get_scope_value())


def _drain_pending_operations(session: Session) -> int:
    executed = 0
    for node in _nested_set_nodes(list(session.new) + list(session.dirty)):
        executed += node.process_nested_set_queries(session)
    return executed


def _remove_deleted_nodes(session: Session, deleted_nodes: List[NestedSetMixin]):
    """删除节点前处理子孙并收拢空隙

    按左值升序处理，祖先先于子孙；子孙被批量删除后会移出会话，随后跳过。
    """
    for node in sorted(deleted_nodes, key=lambda n: n.left or 0):
        if node not in session.deleted or not node.is_in_tree():
            continue
        cls = node.__class__
        scope = node.get_scope_value()
        if not node.is_leaf():
            node._delete_branch(session)
        cls.shift_rl_values(-2, node.right + 1, None, scope, session=session)
        cls.update_loaded_nodes(session=session, scope=scope, prune=node)
        logger.debug(f"{cls.__name__}#{inspect(node).identity}: 删除节点并收拢区间")


@event.listens_for(Session, "before_flush")
def nested_set_before_flush(session: Session, flush_context, instances):
    """flush 前维护嵌套集合结构"""
    new_nodes = _nested_set_nodes(session.new)
    deleted_nodes = _nested_set_nodes(session.deleted)
    if not new_nodes and not deleted_nodes and not _nested_set_nodes(session.dirty):
        return

    _check_new_roots(session, new_nodes)
    _check_deleted_roots(deleted_nodes)
    _drain_pending_operations(session)
    if deleted_nodes:
        _remove_deleted_nodes(session, deleted_nodes)


@event.listens_for(NestedSetMixin, "expire", propagate=True)
def _clear_references_on_expire(target, attrs):
    target.clear_nested_set_references()


@event.listens_for(NestedSetMixin, "refresh", propagate=True)
def _clear_references_on_refresh(target, context, attrs):
    target.clear_nested_set_references()


__all__ = ["nested_set_before_flush"]
