"""嵌套集合 Mixin

为模型提供嵌套集合（Nested Set）树操作：谓词判断、导航查询、插入、移动与删除子树。

每个节点用区间 [left, right] 表示，子孙节点的区间严格包含在祖先区间内，
因此祖先/子孙/子树查询都是一次区间比较，不需要递归查询。

使用示例:
    from ynest.orm import CoreModel
    from ynest.orm.nested_set import NestedSetMixin, NestedSetFieldsMixin

    class Category(CoreModel, NestedSetFieldsMixin, NestedSetMixin):
        name: Mapped[str] = mapped_column(String(100))

    root = Category(name="root").make_root()
    root.save(commit=True)

    books = Category(name="books")
    books.insert_as_last_child_of(root)
    books.save(commit=True)

    root.get_children()      # [books]
    books.get_ancestors()    # [root]
    books.move_to_first_child_of(other)
"""

from typing import Any, Callable, Iterator, List, Optional

from sqlalchemy import inspect
from sqlalchemy.orm import Query, Session, object_session
from sqlalchemy.orm.attributes import set_committed_value

from ynest.log import get_logger

from ..transaction import transaction_manager
from .exceptions import (
    AlreadyInTreeError,
    CrossScopeError,
    CyclicMoveError,
    InvalidRootMutationError,
    InvalidSiblingTargetError,
    NodeNotPersistedError,
    NotInTreeError,
)
from .pending import PendingOperation, PendingOperationKind
from .query import NestedSetQuery, node_identity
from .table import NestedSetTableMixin

logger = get_logger("ynest.orm.nested_set")

Criteria = Optional[Callable[[Query], Query]]


class NestedSetMixin(NestedSetTableMixin):
    """嵌套集合操作 Mixin

    需要与 NestedSetFieldsMixin（或 ScopedNestedSetFieldsMixin）一起使用，
    字段 Mixin 需要放在本类之前，以便 __nested_set_use_scope__ 生效。

    节点上维护两个非权威缓存：父节点引用与子节点列表。任何批量平移之后、
    以及节点被 expire/refresh 时，缓存都会被清空。
    """

    # ==================== 会话 ====================

    def _node_session(self, session: Session = None) -> Session:
        if session is not None:
            return session
        bound = object_session(self)
        if bound is not None:
            return bound
        return self.__class__._nested_set_session()

    def _node_query(self, session: Session = None) -> NestedSetQuery:
        return NestedSetQuery(self.__class__, session=self._node_session(session))

    def _is_new(self) -> bool:
        """节点尚未写入数据库"""
        state = inspect(self)
        return state.transient or state.pending

    # ==================== 字段代理 ====================

    def get_left_value(self) -> Optional[int]:
        return self.left

    def set_left_value(self, value: Optional[int]):
        self.left = value
        return self

    def get_right_value(self) -> Optional[int]:
        return self.right

    def set_right_value(self, value: Optional[int]):
        self.right = value
        return self

    def get_level(self) -> Optional[int]:
        return self.level

    def set_level(self, value: Optional[int]):
        self.level = value
        return self

    def get_scope_value(self) -> Any:
        """获取 scope，未启用 scope 时返回 None"""
        if self.__nested_set_use_scope__:
            return self.scope
        return None

    def set_scope_value(self, value: Any):
        """设置 scope，未启用 scope 时忽略"""
        if self.__nested_set_use_scope__:
            self.scope = value
        return self

    # ==================== 谓词 ====================

    def is_in_tree(self) -> bool:
        """节点是否已在树中（left > 0 且 right > left）"""
        left, right = self.left, self.right
        if left is None or right is None:
            return False
        return left > 0 and right > left

    def is_root(self) -> bool:
        return self.is_in_tree() and self.left == 1

    def is_leaf(self) -> bool:
        return self.is_in_tree() and self.right - self.left == 1

    def has_children(self) -> bool:
        return self.is_in_tree() and self.right - self.left > 1

    def is_descendant_of(self, other) -> bool:
        """当前节点是否为 other 的子孙

        Raises:
            CrossScopeError: 启用 scope 且两个节点不在同一棵树中
        """
        if self.__nested_set_use_scope__ and self.get_scope_value() != other.get_scope_value():
            raise CrossScopeError(self.get_scope_value(), other.get_scope_value())
        if not self.is_in_tree() or not other.is_in_tree():
            return False
        return self.left > other.left and self.right < other.right

    def is_ancestor_of(self, other) -> bool:
        return other.is_descendant_of(self)

    def has_parent(self) -> bool:
        return (self.level or 0) > 0

    def has_prev_sibling(self, session: Session = None) -> bool:
        if not self.is_valid(self):
            return False
        return (
            self._node_query(session)
            .filter_by_column("right", self.left - 1)
            .in_tree(self.get_scope_value())
            .count()
        ) > 0

    def has_next_sibling(self, session: Session = None) -> bool:
        if not self.is_valid(self):
            return False
        return (
            self._node_query(session)
            .filter_by_column("left", self.right + 1)
            .in_tree(self.get_scope_value())
            .count()
        ) > 0

    # ==================== 缓存 ====================

    def set_parent(self, parent=None):
        """设置父节点缓存"""
        self._nested_set_parent = parent
        return self

    def init_nested_set_children(self):
        """初始化子节点缓存为空列表"""
        self._nested_set_children = []

    def add_nested_set_child(self, node, first: bool = False):
        """把 node 登记到子节点缓存中，并设置 node 的父节点缓存"""
        children = getattr(self, "_nested_set_children", None)
        if children is None:
            self.init_nested_set_children()
            children = self._nested_set_children
        if node not in children:
            if first:
                children.insert(0, node)
            else:
                children.append(node)
        node.set_parent(self)

    def clear_nested_set_references(self):
        """清空父节点与子节点缓存"""
        self._nested_set_parent = None
        self._nested_set_children = None

    def _register_child(self, node, first: bool):
        # 未加载过子节点的父节点不初始化缓存，下次读取时查库
        if getattr(self, "_nested_set_children", None) is not None:
            self.add_nested_set_child(node, first=first)
        else:
            node.set_parent(self)

    # ==================== 导航查询 ====================

    def get_parent(self, session: Session = None):
        """获取父节点，根节点返回 None"""
        parent = getattr(self, "_nested_set_parent", None)
        if parent is None and self.has_parent():
            parent = (
                self._node_query(session)
                .ancestors_of(self)
                .order_by_level(reverse=True)
                .find_one()
            )
            self._nested_set_parent = parent
        return parent

    def get_prev_sibling(self, criteria: Criteria = None, session: Session = None):
        if not self.is_in_tree():
            return None
        return (
            self._node_query(session)
            .filter_by_column("right", self.left - 1)
            .in_tree(self.get_scope_value())
            .apply(criteria)
            .find_one()
        )

    def get_next_sibling(self, criteria: Criteria = None, session: Session = None):
        if not self.is_in_tree():
            return None
        return (
            self._node_query(session)
            .filter_by_column("left", self.right + 1)
            .in_tree(self.get_scope_value())
            .apply(criteria)
            .find_one()
        )

    def get_children(self, criteria: Criteria = None, session: Session = None) -> List:
        """获取直接子节点（按左值排序）

        无额外条件时结果会被缓存；叶子节点、不在树中或尚未写库的节点返回空列表。
        """
        children = getattr(self, "_nested_set_children", None)
        if criteria is None and children is not None:
            return list(children)

        if not self.has_children() or self._is_new():
            found = []
        else:
            found = (
                self._node_query(session)
                .children_of(self)
                .apply(criteria)
                .order_by_branch()
                .find()
            )
        if criteria is not None:
            return found

        for child in found:
            child.set_parent(self)
        self._nested_set_children = found
        return list(found)

    def count_children(self, criteria: Criteria = None, session: Session = None) -> int:
        children = getattr(self, "_nested_set_children", None)
        if criteria is None and children is not None:
            return len(children)
        if not self.has_children() or self._is_new():
            return 0
        return self._node_query(session).children_of(self).apply(criteria).count()

    def get_first_child(self, criteria: Criteria = None, session: Session = None):
        if not self.has_children():
            return None
        return (
            self._node_query(session)
            .children_of(self)
            .apply(criteria)
            .order_by_branch()
            .find_one()
        )

    def get_last_child(self, criteria: Criteria = None, session: Session = None):
        if not self.has_children():
            return None
        return (
            self._node_query(session)
            .children_of(self)
            .apply(criteria)
            .order_by_branch(reverse=True)
            .find_one()
        )

    def get_siblings(
        self,
        include_self: bool = False,
        criteria: Criteria = None,
        session: Session = None,
    ) -> List:
        """获取兄弟节点，根节点返回空列表"""
        if self.is_root():
            return []
        parent = self.get_parent(session=session)
        if parent is None:
            return []
        query = self._node_query(session).children_of(parent).apply(criteria).order_by_branch()
        if not include_self:
            query.prune(self)
        return query.find()

    def get_descendants(self, criteria: Criteria = None, session: Session = None) -> List:
        if not self.has_children():
            return []
        return (
            self._node_query(session)
            .descendants_of(self)
            .apply(criteria)
            .order_by_branch()
            .find()
        )

    def count_descendants(self, criteria: Criteria = None, session: Session = None) -> int:
        if not self.has_children():
            return 0
        return self._node_query(session).descendants_of(self).apply(criteria).count()

    def get_branch(self, criteria: Criteria = None, session: Session = None) -> List:
        """获取节点自身及全部子孙，不在树中的节点返回空列表"""
        if not self.is_in_tree():
            return []
        return (
            self._node_query(session)
            .branch_of(self)
            .apply(criteria)
            .order_by_branch()
            .find()
        )

    def get_ancestors(self, criteria: Criteria = None, session: Session = None) -> List:
        """获取全部祖先，从根节点到父节点排序"""
        if self.is_root() or not self.is_in_tree():
            return []
        return (
            self._node_query(session)
            .ancestors_of(self)
            .apply(criteria)
            .order_by_branch()
            .find()
        )

    def iter_branch(self) -> Iterator:
        """先序遍历节点自身及全部子孙（逐层调用 get_children）"""
        yield self
        for child in self.get_children():
            yield from child.iter_branch()

    # ==================== 插入 ====================

    def make_root(self):
        """把新节点设为根节点

        Raises:
            InvalidRootMutationError: 节点已有树坐标
        """
        if self.left or self.right:
            raise InvalidRootMutationError(self)
        self.left = 1
        self.right = 2
        self.level = 0
        return self

    def add_child(self, node):
        """把 node 插入为当前节点的第一个子节点

        Raises:
            NodeNotPersistedError: 当前节点尚未保存
        """
        if self._is_new():
            raise NodeNotPersistedError("add_child")
        node.insert_as_first_child_of(self)
        return self

    def insert_as_first_child_of(self, parent):
        self._check_insertable("insert_as_first_child_of", "move_to_first_child_of", parent)
        self._place_as_leaf(parent.left + 1, parent.level + 1, parent)
        parent._register_child(self, first=True)
        return self

    def insert_as_last_child_of(self, parent):
        self._check_insertable("insert_as_last_child_of", "move_to_last_child_of", parent)
        self._place_as_leaf(parent.right, parent.level + 1, parent)
        parent._register_child(self, first=False)
        return self

    def insert_as_prev_sibling_of(self, sibling):
        self._check_insertable(
            "insert_as_prev_sibling_of", "move_to_prev_sibling_of", sibling, sibling_target=True
        )
        self._place_as_leaf(sibling.left, sibling.level, sibling)
        return self

    def insert_as_next_sibling_of(self, sibling):
        self._check_insertable(
            "insert_as_next_sibling_of", "move_to_next_sibling_of", sibling, sibling_target=True
        )
        self._place_as_leaf(sibling.right + 1, sibling.level, sibling)
        return self

    def _check_insertable(self, method: str, move_method: str, target, sibling_target: bool = False):
        if self.is_in_tree():
            raise AlreadyInTreeError(method, move_method)

        # 参照节点的坐标可能还依赖会话中未写入的插入
        session = object_session(target)
        if session is not None:
            session.flush()

        if not target.is_in_tree():
            raise NotInTreeError(method, f"{method}(): 参照节点不在树中")
        if session is None and target._is_new():
            # 腾出区间的语句执行时参照节点还没有行，区间会错位
            raise NodeNotPersistedError(method)
        if sibling_target and target.is_root():
            raise InvalidSiblingTargetError(method)

    def _place_as_leaf(self, left: int, level: int, reference):
        self.left = left
        self.right = left + 1
        self.level = level
        scope = reference.get_scope_value()
        self.set_scope_value(scope)

        exclude_id = None if self._is_new() else node_identity(self)
        self._enqueue_nested_set_operation(PendingOperation(
            kind=PendingOperationKind.MAKE_ROOM_FOR_LEAF,
            left=left,
            scope=scope,
            exclude_id=exclude_id,
        ))

    # ==================== 延迟操作队列 ====================

    def _enqueue_nested_set_operation(self, operation: PendingOperation):
        queue = getattr(self, "_nested_set_queries", None)
        if queue is None:
            queue = self._nested_set_queries = []
        queue.append(operation)

    def get_pending_nested_set_operations(self) -> List[PendingOperation]:
        return list(getattr(self, "_nested_set_queries", None) or [])

    def process_nested_set_queries(self, session: Session = None) -> int:
        """执行并清空延迟操作队列，返回执行的操作数量

        由 before_flush 钩子在节点写库之前调用。
        """
        queue = getattr(self, "_nested_set_queries", None)
        if not queue:
            return 0
        session = self._node_session(session)
        for operation in queue:
            operation.execute(self.__class__, session)
        self._nested_set_queries = []
        return len(queue)

    # ==================== 移动 ====================

    def move_to_first_child_of(self, parent, session: Session = None):
        method = "move_to_first_child_of"
        session = self._prepare_move(method, "insert_as_first_child_of", parent, session)
        self._move_subtree_to(parent.left + 1, parent.level - self.level + 1, session)
        return self

    def move_to_last_child_of(self, parent, session: Session = None):
        method = "move_to_last_child_of"
        session = self._prepare_move(method, "insert_as_last_child_of", parent, session)
        self._move_subtree_to(parent.right, parent.level - self.level + 1, session)
        return self

    def move_to_prev_sibling_of(self, sibling, session: Session = None):
        method = "move_to_prev_sibling_of"
        session = self._prepare_move(
            method, "insert_as_prev_sibling_of", sibling, session, sibling_target=True
        )
        self._move_subtree_to(sibling.left, sibling.level - self.level, session)
        return self

    def move_to_next_sibling_of(self, sibling, session: Session = None):
        method = "move_to_next_sibling_of"
        session = self._prepare_move(
            method, "insert_as_next_sibling_of", sibling, session, sibling_target=True
        )
        self._move_subtree_to(sibling.right + 1, sibling.level - self.level, session)
        return self

    def _prepare_move(
        self,
        method: str,
        insert_method: str,
        target,
        session: Session = None,
        sibling_target: bool = False,
    ) -> Session:
        """校验移动参数，返回本次移动使用的 session

        校验前先 flush，保证两端节点的坐标都是数据库中的最新值。
        """
        session = self._node_session(session)
        session.flush()

        if not self.is_in_tree():
            raise NotInTreeError(method, f"节点不在树中，不能调用 {method}()，请使用 {insert_method}()")
        if not target.is_in_tree():
            raise NotInTreeError(method, f"{method}(): 目标节点不在树中")
        if target.get_scope_value() != self.get_scope_value():
            raise CrossScopeError(self.get_scope_value(), target.get_scope_value(), action="移动")
        if sibling_target and target.is_root():
            raise InvalidSiblingTargetError(method)
        if target is self or target.is_descendant_of(self):
            raise CyclicMoveError(method)
        return session

    def _move_subtree_to(self, dest_left: int, level_delta: int, session: Session = None):
        """把以当前节点为根的子树整体移动到 dest_left 处

        先在目标位置腾出子树大小的空间，再把子树平移过去，最后收拢原位置留下的空隙。
        """
        cls = self.__class__
        session = self._node_session(session)
        left = self.left
        right = self.right
        scope = self.get_scope_value()
        tree_size = right - left + 1

        try:
            with transaction_manager.transaction(session=session):
                cls.shift_rl_values(tree_size, dest_left, None, scope, session=session)

                # 子树在目标位置之后时，会被上一步一起平移
                if left >= dest_left:
                    left += tree_size
                    right += tree_size

                if level_delta:
                    cls.shift_level(level_delta, left, right, scope, session=session)

                cls.shift_rl_values(dest_left - left, left, right, scope, session=session)
                cls.shift_rl_values(-tree_size, right + 1, None, scope, session=session)
                cls.update_loaded_nodes(session=session, scope=scope)
        except Exception as e:
            logger.warning(f"{cls.__name__}#{node_identity(self)} 移动子树失败，已回滚: {e}")
            raise

        logger.info(
            f"{cls.__name__}#{node_identity(self)}: 子树移动到 left={dest_left}，"
            f"层级变化 {level_delta:+d}"
        )

    # ==================== 删除 ====================

    def delete_descendants(self, session: Session = None) -> int:
        """删除全部子孙节点，当前节点变为叶子节点

        Returns:
            删除的行数

        Raises:
            NotInTreeError: 节点不在树中
        """
        if not self.is_in_tree():
            raise NotInTreeError("delete_descendants")
        if self.is_leaf():
            return 0

        cls = self.__class__
        session = self._node_session(session)
        session.flush()

        try:
            with transaction_manager.transaction(session=session):
                count = self._delete_branch(session)
        except Exception as e:
            logger.warning(f"{cls.__name__}#{node_identity(self)} 删除子孙节点失败，已回滚: {e}")
            raise

        logger.info(f"{cls.__name__}#{node_identity(self)}: 删除 {count} 个子孙节点")
        return count

    def _delete_branch(self, session: Session) -> int:
        """删除子孙行并收拢空隙，不开启事务（flush 钩子中也会调用）"""
        cls = self.__class__
        left = self.left
        right = self.right
        scope = self.get_scope_value()

        count = cls._delete_branch_rows(left, right, scope, session=session)
        cls.shift_rl_values(left - right + 1, right, None, scope, session=session)
        # 数据库中的右值已经由上一条平移更新
        set_committed_value(self, "right", left + 1)
        self._nested_set_children = []
        cls.update_loaded_nodes(session=session, scope=scope, prune=self)
        return count


__all__ = ["NestedSetMixin"]
