"""嵌套集合查询构造器

把祖先/子孙/子节点/兄弟等关系翻译为区间比较条件，链式调用。

使用示例:
    from ynest.orm.nested_set import NestedSetQuery

    children = NestedSetQuery(Category).children_of(node).order_by_branch().find()
    depth2 = NestedSetQuery(Category).in_tree(3).filter_by_column("level", 2).count()
"""

from typing import Any, Callable, List, Optional

from sqlalchemy import inspect
from sqlalchemy.orm import Query, Session


def node_identity(node) -> Optional[Any]:
    """读取节点主键，不触发 flush

    CoreModel 访问 pending 对象的 id 时会自动 flush，这里直接读取实例状态。
    """
    state = inspect(node)
    if state.identity:
        return state.identity[0]
    return state.dict.get("id")


class NestedSetQuery:
    """嵌套集合查询构造器

    包装一个 SQLAlchemy Query，关系过滤会自动附加节点所在的 scope 条件。

    Args:
        model_class: 使用 NestedSetMixin 的模型类
        session: 数据库会话，不传则使用模型类默认的 session
    """

    def __init__(self, model_class, session: Session = None):
        self.model_class = model_class
        if session is None:
            session = model_class._nested_set_session()
        self.session = session
        self._query: Query = session.query(model_class)

    @property
    def query(self) -> Query:
        """底层 SQLAlchemy Query"""
        return self._query

    def _use_scope(self) -> bool:
        return getattr(self.model_class, "__nested_set_use_scope__", False)

    def _filter(self, *criteria) -> "NestedSetQuery":
        self._query = self._query.filter(*criteria)
        return self

    def _same_tree_as(self, node) -> "NestedSetQuery":
        if self._use_scope():
            self._filter(self.model_class.scope == node.scope)
        return self

    # ==================== 过滤条件 ====================

    def filter_by_column(self, name: str, value: Any) -> "NestedSetQuery":
        """按列精确匹配"""
        return self._filter(getattr(self.model_class, name) == value)

    def apply(self, criteria: Optional[Callable[[Query], Query]]) -> "NestedSetQuery":
        """应用调用方追加的查询条件

        Args:
            criteria: 接收 Query 返回 Query 的函数，None 时忽略
        """
        if criteria is not None:
            self._query = criteria(self._query)
        return self

    def in_tree(self, scope: Any = None) -> "NestedSetQuery":
        """限定在指定 scope 的树中（未启用 scope 时不加条件）"""
        if self._use_scope():
            self._filter(self.model_class.scope == scope)
        return self

    def tree_roots(self) -> "NestedSetQuery":
        """只保留根节点"""
        return self._filter(self.model_class.left == 1)

    def descendants_of(self, node) -> "NestedSetQuery":
        """node 的全部子孙（不含自身）"""
        cls = self.model_class
        self._filter(cls.left > node.left, cls.right < node.right)
        return self._same_tree_as(node)

    def branch_of(self, node) -> "NestedSetQuery":
        """node 自身及其全部子孙"""
        cls = self.model_class
        self._filter(cls.left >= node.left, cls.right <= node.right)
        return self._same_tree_as(node)

    def children_of(self, node) -> "NestedSetQuery":
        """node 的直接子节点"""
        self.descendants_of(node)
        return self._filter(self.model_class.level == node.level + 1)

    def ancestors_of(self, node) -> "NestedSetQuery":
        """node 的全部祖先（不含自身）"""
        cls = self.model_class
        self._filter(cls.left < node.left, cls.right > node.right)
        return self._same_tree_as(node)

    def siblings_of(self, node) -> "NestedSetQuery":
        """node 的兄弟节点（不含自身），根节点没有兄弟"""
        if node.is_root():
            return self._filter(self.model_class.id.is_(None))
        parent = node.get_parent(session=self.session)
        if parent is None:
            return self._filter(self.model_class.id.is_(None))
        return self.children_of(parent).prune(node)

    def prune(self, node=None) -> "NestedSetQuery":
        """排除指定节点"""
        if node is None:
            return self
        ident = node_identity(node)
        if ident is None:
            return self
        return self._filter(self.model_class.id != ident)

    # ==================== 排序 ====================

    def order_by_branch(self, reverse: bool = False) -> "NestedSetQuery":
        """按左值排序（先序遍历顺序）"""
        column = self.model_class.left
        self._query = self._query.order_by(column.desc() if reverse else column.asc())
        return self

    def order_by_scope(self) -> "NestedSetQuery":
        """按 scope 排序（未启用 scope 时不加排序）"""
        if self._use_scope():
            self._query = self._query.order_by(self.model_class.scope.asc())
        return self

    def order_by_level(self, reverse: bool = False) -> "NestedSetQuery":
        """按层级排序，同层按左值排序"""
        cls = self.model_class
        if reverse:
            self._query = self._query.order_by(cls.level.desc(), cls.left.desc())
        else:
            self._query = self._query.order_by(cls.level.asc(), cls.left.asc())
        return self

    # ==================== 执行 ====================

    def find(self) -> List:
        return self._query.all()

    def find_one(self):
        return self._query.first()

    def count(self) -> int:
        return self._query.count()

    def delete(self) -> int:
        """批量删除匹配的行，返回删除数量

        直接执行 DELETE，不会触发 before_flush 中的补位逻辑，
        适合删除整棵树或整条分支。
        """
        return self._query.delete(synchronize_session="fetch")


__all__ = ["NestedSetQuery", "node_identity"]
