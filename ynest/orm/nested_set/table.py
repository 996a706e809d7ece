"""嵌套集合表级操作

以类方法形式提供批量区间平移原语，以及整棵树级别的读取、校验与修复操作。
NestedSetMixin 继承本类，模型上可直接调用 Category.shift_rl_values(...) 等方法。
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import delete, inspect, update
from sqlalchemy.orm import Session
from sqlalchemy.orm.util import identity_key

from ynest.log import get_logger

from ..transaction import transaction_manager
from .config import NestedSetConfig
from .query import NestedSetQuery, node_identity
from .utils import build_tree_list

logger = get_logger("ynest.orm.nested_set")

# 区间平移后需要过期的树属性
TREE_ATTRIBUTES = ("left", "right", "level")


class NestedSetTableMixin:
    """嵌套集合表级操作 Mixin"""

    __nested_set_use_scope__ = False

    # ==================== 会话与查询 ====================

    @classmethod
    def _nested_set_session(cls, session: Session = None) -> Session:
        """解析本次操作使用的 session"""
        if session is not None:
            return session
        get_session = getattr(cls, "get_session", None)
        if get_session is not None:
            return get_session()
        return cls.query.session

    @classmethod
    def nested_set_query(cls, session: Session = None) -> NestedSetQuery:
        """创建嵌套集合查询构造器"""
        return NestedSetQuery(cls, session=cls._nested_set_session(session))

    @classmethod
    def _scope_criteria(cls, scope: Any) -> list:
        if cls.__nested_set_use_scope__:
            return [cls.scope == scope]
        return []

    # ==================== 批量平移原语 ====================

    @classmethod
    def shift_rl_values(
        cls,
        delta: int,
        first: int,
        last: Optional[int] = None,
        scope: Any = None,
        session: Session = None,
        exclude: Any = None,
    ) -> int:
        """平移区间值

        左值与右值是两条独立的 UPDATE：
            left  += delta  WHERE left  >= first [AND left  <= last]
            right += delta  WHERE right >= first [AND right <= last]

        Args:
            delta: 平移量，可为负数
            first: 起始值（包含）
            last: 结束值（包含），None 表示直到末尾
            scope: 所在树的 scope
            session: 数据库会话
            exclude: 不参与平移的节点或节点 ID

        Returns:
            两条语句影响的总行数
        """
        session = cls._nested_set_session(session)
        exclude_id = cls._resolve_exclude(exclude)
        total = 0

        for attr in (cls.left, cls.right):
            criteria = [attr >= first]
            if last is not None:
                criteria.append(attr <= last)
            criteria.extend(cls._scope_criteria(scope))
            if exclude_id is not None:
                criteria.append(cls.id != exclude_id)

            stmt = (
                update(cls)
                .where(*criteria)
                .values({attr: attr + delta})
                .execution_options(synchronize_session=False)
            )
            total += session.execute(stmt).rowcount or 0

        if NestedSetConfig.log_shifts():
            logger.debug(
                f"{cls.__name__}.shift_rl_values(delta={delta}, first={first}, "
                f"last={last}, scope={scope!r}) -> {total} 行"
            )
        return total

    @classmethod
    def shift_level(
        cls,
        delta: int,
        first: int,
        last: int,
        scope: Any = None,
        session: Session = None,
    ) -> int:
        """平移层级：level += delta WHERE left >= first AND right <= last"""
        session = cls._nested_set_session(session)
        stmt = (
            update(cls)
            .where(cls.left >= first, cls.right <= last, *cls._scope_criteria(scope))
            .values({cls.level: cls.level + delta})
            .execution_options(synchronize_session=False)
        )
        count = session.execute(stmt).rowcount or 0

        if NestedSetConfig.log_shifts():
            logger.debug(
                f"{cls.__name__}.shift_level(delta={delta}, first={first}, "
                f"last={last}, scope={scope!r}) -> {count} 行"
            )
        return count

    @classmethod
    def make_room_for_leaf(
        cls,
        left: int,
        scope: Any = None,
        exclude: Any = None,
        session: Session = None,
    ) -> int:
        """在 left 处为新叶子节点腾出 2 个单位的区间"""
        session = cls._nested_set_session(session)
        count = cls.shift_rl_values(2, left, None, scope=scope, session=session, exclude=exclude)
        cls.update_loaded_nodes(session=session, scope=scope)
        return count

    @classmethod
    def _resolve_exclude(cls, exclude: Any) -> Optional[Any]:
        if exclude is None:
            return None
        if isinstance(exclude, NestedSetTableMixin):
            return node_identity(exclude)
        return exclude

    # ==================== 已加载节点同步 ====================

    @classmethod
    def update_loaded_nodes(
        cls,
        session: Session = None,
        scope: Any = None,
        prune: Any = None,
    ) -> int:
        """让会话中已加载节点的树属性过期

        批量 UPDATE 不会同步内存中的对象，过期后下次访问会重新读取。
        尚未 flush 的修改不会被覆盖。已标记删除但尚未 flush 的节点同样会过期，
        flush 钩子按左值依次处理它们时需要读到最新坐标。

        Args:
            session: 数据库会话
            scope: 只处理该 scope 的节点（启用 scope 时），None 表示不限
            prune: 跳过的节点

        Returns:
            处理的节点数量
        """
        if not NestedSetConfig.refresh_loaded_nodes():
            return 0

        session = cls._nested_set_session(session)
        count = 0
        for obj in list(session.identity_map.values()):
            if not isinstance(obj, cls) or obj is prune:
                continue
            state = inspect(obj)
            if state.pending:
                continue
            if cls.__nested_set_use_scope__ and scope is not None:
                if state.dict.get("scope", scope) != scope:
                    continue

            keys = [
                key for key in TREE_ATTRIBUTES
                if key in state.dict and not state.attrs[key].history.has_changes()
            ]
            if keys:
                session.expire(obj, keys)
            obj.clear_nested_set_references()
            count += 1

        return count

    # ==================== 分支删除 ====================

    @classmethod
    def _delete_branch_rows(
        cls,
        left: int,
        right: int,
        scope: Any = None,
        session: Session = None,
    ) -> int:
        """删除区间 (left, right) 内的全部行（不含边界节点自身）

        会话中对应的已加载对象会被移出会话。
        """
        session = cls._nested_set_session(session)
        criteria = [cls.left > left, cls.right < right, *cls._scope_criteria(scope)]

        ids = [row[0] for row in session.query(cls.id).filter(*criteria).all()]
        if not ids:
            return 0

        stmt = delete(cls).where(*criteria).execution_options(synchronize_session=False)
        count = session.execute(stmt).rowcount or 0

        for ident in ids:
            obj = session.identity_map.get(identity_key(cls, ident))
            if obj is not None:
                session.expunge(obj)

        logger.debug(f"{cls.__name__}: 删除区间 ({left}, {right}) 内的 {count} 个节点")
        return count

    # ==================== 树级别操作 ====================

    @classmethod
    def retrieve_roots(cls, criteria=None, session: Session = None) -> List:
        """获取全部根节点"""
        return (
            cls.nested_set_query(session)
            .tree_roots()
            .apply(criteria)
            .order_by_scope()
            .find()
        )

    @classmethod
    def retrieve_root(cls, scope: Any = None, session: Session = None):
        """获取指定树的根节点，不存在返回 None"""
        return cls.nested_set_query(session).tree_roots().in_tree(scope).find_one()

    @classmethod
    def retrieve_tree(cls, scope: Any = None, criteria=None, session: Session = None) -> List:
        """按先序遍历顺序获取整棵树"""
        return (
            cls.nested_set_query(session)
            .in_tree(scope)
            .apply(criteria)
            .order_by_branch()
            .find()
        )

    @classmethod
    def is_valid(cls, node: Any) -> bool:
        """检查 node 是否为本模型的有效树节点（left < right）"""
        if not isinstance(node, cls):
            return False
        left, right = node.left, node.right
        if left is None or right is None:
            return False
        return left < right

    @classmethod
    def delete_tree(cls, scope: Any = None, session: Session = None) -> int:
        """删除整棵树，返回删除的行数

        直接执行 DELETE，不经过逐个节点的删除钩子。
        """
        count = cls.nested_set_query(session).in_tree(scope).delete()
        logger.info(f"{cls.__name__}: 删除树 scope={scope!r}，共 {count} 个节点")
        return count

    @classmethod
    def fix_levels(cls, scope: Any = None, session: Session = None) -> int:
        """根据区间重新计算每个节点的层级

        按先序遍历顺序扫描一次，用栈保存尚未闭合的祖先右值。
        启用 scope 且 scope 为 None 时修复表中所有树。

        Returns:
            层级被修改的节点数量
        """
        session = cls._nested_set_session(session)
        query = cls.nested_set_query(session)
        if cls.__nested_set_use_scope__ and scope is not None:
            query.in_tree(scope)
        nodes = query.order_by_scope().order_by_branch().find()

        changed = 0
        with transaction_manager.transaction(session=session):
            stack: List[int] = []
            current_scope = object()
            for node in nodes:
                node_scope = node.scope if cls.__nested_set_use_scope__ else None
                if node_scope != current_scope:
                    stack = []
                    current_scope = node_scope
                while stack and stack[-1] < node.left:
                    stack.pop()
                if node.level != len(stack):
                    node.level = len(stack)
                    changed += 1
                stack.append(node.right)
            session.flush()

        logger.info(f"{cls.__name__}: 修复层级 scope={scope!r}，修改 {changed} 个节点")
        return changed

    @classmethod
    def get_tree_list(cls, scope: Any = None, session: Session = None) -> List[Dict[str, Any]]:
        """获取嵌套字典结构的整棵树，便于接口返回"""
        return build_tree_list(cls.retrieve_tree(scope, session=session))


__all__ = ["NestedSetTableMixin", "TREE_ATTRIBUTES"]
