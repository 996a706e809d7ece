"""嵌套集合 NestedSetMixin 测试

测试 NestedSetMixin 的核心功能：
1. 谓词判断
2. 导航查询
3. 插入节点
4. 延迟操作队列
"""

import pytest
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, sessionmaker, scoped_session

from ynest.orm import CoreModel, Base
from ynest.orm.nested_set import (
    NestedSetMixin,
    NestedSetFieldsMixin,
    PendingOperation,
    PendingOperationKind,
    AlreadyInTreeError,
    NotInTreeError,
    InvalidRootMutationError,
    InvalidSiblingTargetError,
    DuplicateRootError,
    NodeNotPersistedError,
)

from tests.helpers import coords, names, build_sample_tree


# ==================== 测试模型定义 ====================

class NsCategory(CoreModel, NestedSetFieldsMixin, NestedSetMixin):
    """分类模型 - 单棵树"""
    __tablename__ = "test_ns_category"
    __table_args__ = {'extend_existing': True}

    name: Mapped[str] = mapped_column(String(100))


# ==================== 测试类 ====================

class TestPredicates:
    """谓词判断测试"""

    @pytest.fixture(autouse=True)
    def setup_db(self, memory_engine):
        """初始化数据库"""
        Base.metadata.create_all(bind=memory_engine)
        SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=memory_engine)
        self.session_scope = scoped_session(SessionLocal)
        CoreModel.query = self.session_scope.query_property()
        self.tree = build_sample_tree(NsCategory)
        yield
        self.session_scope.remove()

    def test_sample_tree_coordinates(self):
        """测试逐个插入后的区间值"""
        t = self.tree
        assert coords(t["root"]) == (1, 14, 0)
        assert coords(t["a"]) == (2, 7, 1)
        assert coords(t["a1"]) == (3, 4, 2)
        assert coords(t["a2"]) == (5, 6, 2)
        assert coords(t["b"]) == (8, 9, 1)
        assert coords(t["c"]) == (10, 13, 1)
        assert coords(t["c1"]) == (11, 12, 2)

    def test_new_node_is_not_in_tree(self):
        """测试新节点不在树中"""
        node = NsCategory(name="new")

        assert node.is_in_tree() is False
        assert node.is_root() is False
        assert node.is_leaf() is False
        assert node.has_children() is False
        assert node.has_parent() is False

    def test_root_predicates(self):
        """测试根节点谓词"""
        root = self.tree["root"]

        assert root.is_in_tree() is True
        assert root.is_root() is True
        assert root.is_leaf() is False
        assert root.has_children() is True
        assert root.has_parent() is False
        assert root.level == 0

    def test_leaf_predicates(self):
        """测试叶子节点谓词"""
        a1 = self.tree["a1"]

        assert a1.is_leaf() is True
        assert a1.has_children() is False
        assert a1.has_parent() is True

    def test_leaf_is_not_has_children(self):
        """测试 is_leaf 与 has_children 互斥"""
        for node in self.tree.values():
            assert node.is_leaf() == (not node.has_children())

    def test_descendant_and_ancestor(self):
        """测试子孙与祖先判断"""
        t = self.tree

        assert t["a1"].is_descendant_of(t["root"]) is True
        assert t["a1"].is_descendant_of(t["a"]) is True
        assert t["a1"].is_descendant_of(t["c"]) is False
        assert t["a"].is_descendant_of(t["a"]) is False
        assert t["root"].is_ancestor_of(t["c1"]) is True
        assert t["c1"].is_ancestor_of(t["root"]) is False

    def test_descendant_of_new_node(self):
        """测试新节点不是任何节点的子孙"""
        assert NsCategory(name="new").is_descendant_of(self.tree["root"]) is False

    def test_sibling_existence(self):
        """测试兄弟节点存在性"""
        t = self.tree

        assert t["a"].has_prev_sibling() is False
        assert t["a"].has_next_sibling() is True
        assert t["b"].has_prev_sibling() is True
        assert t["c"].has_next_sibling() is False
        assert t["root"].has_next_sibling() is False

    def test_sibling_existence_of_invalid_node(self):
        """测试无效节点没有兄弟"""
        node = NsCategory(name="new")

        assert node.has_prev_sibling() is False
        assert node.has_next_sibling() is False

    def test_proxy_accessors(self):
        """测试字段代理方法"""
        node = NsCategory(name="proxy")

        result = node.set_left_value(3).set_right_value(4).set_level(2)

        assert result is node
        assert node.get_left_value() == 3
        assert node.get_right_value() == 4
        assert node.get_level() == 2
        # 未启用 scope
        assert node.set_scope_value(5) is node
        assert node.get_scope_value() is None


class TestNavigation:
    """导航查询测试"""

    @pytest.fixture(autouse=True)
    def setup_db(self, memory_engine):
        """初始化数据库"""
        Base.metadata.create_all(bind=memory_engine)
        SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=memory_engine)
        self.session_scope = scoped_session(SessionLocal)
        CoreModel.query = self.session_scope.query_property()
        self.tree = build_sample_tree(NsCategory)
        yield
        self.session_scope.remove()

    def test_get_parent(self):
        """测试获取父节点"""
        t = self.tree

        assert t["a1"].get_parent() is t["a"]
        assert t["a"].get_parent() is t["root"]
        assert t["root"].get_parent() is None

    def test_get_parent_uses_cache(self):
        """测试父节点缓存"""
        t = self.tree
        t["a1"].set_parent(t["c"])

        assert t["a1"].get_parent() is t["c"]

        t["a1"].clear_nested_set_references()
        assert t["a1"].get_parent() is t["a"]

    def test_get_siblings_by_position(self):
        """测试获取前后兄弟"""
        t = self.tree

        assert t["b"].get_prev_sibling() is t["a"]
        assert t["b"].get_next_sibling() is t["c"]
        assert t["a"].get_prev_sibling() is None
        assert t["c"].get_next_sibling() is None
        assert t["a2"].get_prev_sibling() is t["a1"]

    def test_get_children(self):
        """测试获取直接子节点"""
        t = self.tree

        assert names(t["root"].get_children()) == ["a", "b", "c"]
        assert names(t["a"].get_children()) == ["a1", "a2"]
        assert t["a1"].get_children() == []

    def test_get_children_sets_parent_cache(self):
        """测试获取子节点时设置子节点的父节点缓存"""
        t = self.tree
        children = t["root"].get_children()

        for child in children:
            assert child._nested_set_parent is t["root"]

    def test_get_children_with_criteria(self):
        """测试附加条件查询子节点（不缓存）"""
        t = self.tree

        found = t["root"].get_children(criteria=lambda q: q.filter(NsCategory.name != "b"))

        assert names(found) == ["a", "c"]
        assert names(t["root"].get_children()) == ["a", "b", "c"]

    def test_count_children(self):
        """测试统计子节点"""
        t = self.tree

        assert t["root"].count_children() == 3
        assert t["a1"].count_children() == 0
        assert t["root"].count_children(criteria=lambda q: q.filter(NsCategory.name == "c")) == 1

    def test_count_children_uses_cache(self):
        """测试统计子节点时使用缓存"""
        root = self.tree["root"]
        root.get_children()
        root._nested_set_children.pop()

        assert root.count_children() == 2

    def test_first_and_last_child(self):
        """测试第一个与最后一个子节点"""
        t = self.tree

        assert t["root"].get_first_child() is t["a"]
        assert t["root"].get_last_child() is t["c"]
        assert t["c"].get_first_child() is t["c1"]
        assert t["a1"].get_first_child() is None
        assert t["a1"].get_last_child() is None

    def test_get_siblings(self):
        """测试获取兄弟节点"""
        t = self.tree

        assert names(t["b"].get_siblings()) == ["a", "c"]
        assert names(t["b"].get_siblings(include_self=True)) == ["a", "b", "c"]
        assert t["c1"].get_siblings() == []
        assert t["root"].get_siblings() == []

    def test_get_descendants(self):
        """测试获取子孙节点"""
        t = self.tree

        assert names(t["root"].get_descendants()) == ["a", "a1", "a2", "b", "c", "c1"]
        assert names(t["a"].get_descendants()) == ["a1", "a2"]
        assert t["b"].get_descendants() == []

    def test_count_descendants(self):
        """测试统计子孙节点"""
        t = self.tree

        assert t["root"].count_descendants() == 6
        assert t["c"].count_descendants() == 1
        assert t["a1"].count_descendants() == 0

    def test_get_branch(self):
        """测试获取分支（含自身）"""
        t = self.tree

        assert names(t["a"].get_branch()) == ["a", "a1", "a2"]
        assert names(t["b"].get_branch()) == ["b"]

    def test_get_ancestors(self):
        """测试获取祖先节点"""
        t = self.tree

        assert names(t["c1"].get_ancestors()) == ["root", "c"]
        assert names(t["a"].get_ancestors()) == ["root"]
        assert t["root"].get_ancestors() == []
        assert NsCategory(name="new").get_ancestors() == []

    def test_iter_branch(self):
        """测试先序遍历"""
        assert names(self.tree["root"].iter_branch()) == ["root", "a", "a1", "a2", "b", "c", "c1"]

    def test_navigation_of_saved_node_outside_tree(self):
        """测试已保存但不在树中的节点，导航查询返回空结果"""
        loose = NsCategory(name="loose")
        loose.save(commit=True)

        assert loose.get_prev_sibling() is None
        assert loose.get_next_sibling() is None
        assert loose.get_children() == []
        assert loose.get_children(criteria=lambda q: q) == []
        assert loose.count_children() == 0
        assert loose.get_first_child() is None
        assert loose.get_last_child() is None
        assert loose.get_descendants() == []
        assert loose.count_descendants() == 0
        assert loose.get_branch() == []
        assert loose.get_ancestors() == []
        assert loose.get_siblings() == []
        assert loose.get_parent() is None
        assert list(loose.iter_branch()) == [loose]


class TestInsertion:
    """插入节点测试"""

    @pytest.fixture(autouse=True)
    def setup_db(self, memory_engine):
        """初始化数据库"""
        Base.metadata.create_all(bind=memory_engine)
        SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=memory_engine)
        self.session_scope = scoped_session(SessionLocal)
        CoreModel.query = self.session_scope.query_property()
        yield
        self.session_scope.remove()

    def test_make_root(self):
        """测试创建根节点"""
        root = NsCategory(name="root").make_root()
        root.save(commit=True)

        assert coords(root) == (1, 2, 0)
        assert root.is_root() is True

    def test_make_root_on_positioned_node(self):
        """测试已有坐标的节点不能设为根节点"""
        node = NsCategory(name="node", left=3, right=4)

        with pytest.raises(InvalidRootMutationError):
            node.make_root()

    def test_duplicate_root(self):
        """测试同一棵树只能有一个根节点"""
        NsCategory(name="root").make_root().save(commit=True)

        other = NsCategory(name="other").make_root()
        with pytest.raises(DuplicateRootError):
            other.save(commit=True)
        self.session_scope().rollback()

        assert NsCategory.query.filter(NsCategory.left == 1).count() == 1

    def test_duplicate_roots_in_one_flush(self):
        """测试同一次 flush 中的两个新根节点"""
        first = NsCategory(name="first").make_root()
        second = NsCategory(name="second").make_root()
        session = self.session_scope()
        session.add_all([first, second])

        with pytest.raises(DuplicateRootError):
            session.flush()
        session.rollback()

    def test_worked_example(self):
        """测试插入与移动的完整示例"""
        r = NsCategory(name="R").make_root()
        r.save(commit=True)
        assert coords(r) == (1, 2, 0)

        c1 = NsCategory(name="C1").insert_as_first_child_of(r)
        c1.save(commit=True)
        assert coords(r) == (1, 4, 0)
        assert coords(c1) == (2, 3, 1)

        c2 = NsCategory(name="C2").insert_as_next_sibling_of(c1)
        c2.save(commit=True)
        assert coords(c1) == (2, 3, 1)
        assert coords(c2) == (4, 5, 1)
        assert coords(r) == (1, 6, 0)

        c2.move_to_first_child_of(c1)
        assert coords(c1) == (2, 5, 1)
        assert coords(c2) == (3, 4, 2)
        assert coords(r) == (1, 6, 0)

    def test_insert_as_first_child(self):
        """测试插入为第一个子节点"""
        t = build_sample_tree(NsCategory)

        node = NsCategory(name="z").insert_as_first_child_of(t["root"])
        node.save(commit=True)

        assert coords(node) == (2, 3, 1)
        assert coords(t["a"]) == (4, 9, 1)
        assert coords(t["root"]) == (1, 16, 0)
        assert names(t["root"].get_children()) == ["z", "a", "b", "c"]

    def test_insert_as_last_child(self):
        """测试插入为最后一个子节点"""
        t = build_sample_tree(NsCategory)

        node = NsCategory(name="b1").insert_as_last_child_of(t["b"])
        node.save(commit=True)

        assert coords(node) == (9, 10, 2)
        assert coords(t["b"]) == (8, 11, 1)
        assert coords(t["c"]) == (12, 15, 1)
        assert coords(t["root"]) == (1, 16, 0)

    def test_insert_as_prev_sibling(self):
        """测试插入为前一个兄弟节点"""
        t = build_sample_tree(NsCategory)

        node = NsCategory(name="x").insert_as_prev_sibling_of(t["b"])
        node.save(commit=True)

        assert coords(node) == (8, 9, 1)
        assert coords(t["b"]) == (10, 11, 1)
        assert names(t["root"].get_children()) == ["a", "x", "b", "c"]

    def test_insert_as_next_sibling(self):
        """测试插入为后一个兄弟节点"""
        t = build_sample_tree(NsCategory)

        node = NsCategory(name="x").insert_as_next_sibling_of(t["a1"])
        node.save(commit=True)

        assert coords(node) == (5, 6, 2)
        assert coords(t["a2"]) == (7, 8, 2)
        assert coords(t["a"]) == (2, 9, 1)
        assert names(t["a"].get_children()) == ["a1", "x", "a2"]

    def test_insert_keeps_intervals_nested(self):
        """测试多次插入后区间仍然严格嵌套"""
        t = build_sample_tree(NsCategory)
        NsCategory(name="x").insert_as_first_child_of(t["c1"]).save(commit=True)
        NsCategory(name="y").insert_as_prev_sibling_of(t["a2"]).save(commit=True)

        nodes = NsCategory.retrieve_tree()
        values = sorted(v for n in nodes for v in (n.left, n.right))
        assert values == list(range(1, 2 * len(nodes) + 1))
        for node in nodes:
            parent = node.get_parent()
            if parent is not None:
                assert parent.left < node.left and parent.right > node.right
                assert node.level == parent.level + 1

    def test_insert_node_already_in_tree(self):
        """测试已在树中的节点不能再插入"""
        t = build_sample_tree(NsCategory)

        with pytest.raises(AlreadyInTreeError) as exc_info:
            t["a"].insert_as_last_child_of(t["c"])

        assert exc_info.value.move_method == "move_to_last_child_of"

    def test_insert_relative_to_node_not_in_tree(self):
        """测试参照节点不在树中"""
        with pytest.raises(NotInTreeError):
            NsCategory(name="x").insert_as_last_child_of(NsCategory(name="y"))

    def test_insert_as_sibling_of_root(self):
        """测试不能插入为根节点的兄弟"""
        t = build_sample_tree(NsCategory)

        with pytest.raises(InvalidSiblingTargetError):
            NsCategory(name="x").insert_as_next_sibling_of(t["root"])
        with pytest.raises(InvalidSiblingTargetError):
            NsCategory(name="x").insert_as_prev_sibling_of(t["root"])

    def test_insert_relative_to_transient_node(self):
        """测试参照节点不在任何会话中时拒绝插入"""
        root = NsCategory(name="root").make_root()

        with pytest.raises(NodeNotPersistedError) as exc_info:
            NsCategory(name="child").insert_as_first_child_of(root)

        assert exc_info.value.method == "insert_as_first_child_of"
        assert NsCategory.query.count() == 0

    def test_insert_relative_to_pending_node(self):
        """测试参照节点已加入会话时先写库再插入"""
        session = self.session_scope()
        root = NsCategory(name="root").make_root()
        session.add(root)

        child = NsCategory(name="child").insert_as_first_child_of(root)
        session.add(child)
        session.commit()

        assert coords(root) == (1, 4, 0)
        assert coords(child) == (2, 3, 1)

    def test_insert_registers_parent_cache(self):
        """测试插入子节点时设置父节点缓存"""
        root = NsCategory(name="root").make_root()
        root.save(commit=True)
        assert root.get_children() == []

        child = NsCategory(name="child").insert_as_first_child_of(root)
        other = NsCategory(name="other").insert_as_first_child_of(root)

        assert child.get_parent() is root
        # 已加载的子节点缓存按插入位置排列
        assert root.get_children() == [other, child]

    def test_add_child(self):
        """测试 add_child 插入为第一个子节点"""
        t = build_sample_tree(NsCategory)

        node = NsCategory(name="c0")
        result = t["c"].add_child(node)
        node.save(commit=True)

        assert result is t["c"]
        assert names(t["c"].get_children()) == ["c0", "c1"]

    def test_add_child_to_new_node(self):
        """测试未保存的节点不能添加子节点"""
        root = NsCategory(name="root").make_root()

        with pytest.raises(NodeNotPersistedError):
            root.add_child(NsCategory(name="child"))


class TestPendingOperations:
    """延迟操作队列测试"""

    @pytest.fixture(autouse=True)
    def setup_db(self, memory_engine):
        """初始化数据库"""
        Base.metadata.create_all(bind=memory_engine)
        SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=memory_engine)
        self.session_scope = scoped_session(SessionLocal)
        CoreModel.query = self.session_scope.query_property()
        yield
        self.session_scope.remove()

    def test_insert_queues_make_room(self):
        """测试插入时登记腾出区间操作"""
        root = NsCategory(name="root").make_root()
        root.save(commit=True)

        child = NsCategory(name="child").insert_as_last_child_of(root)

        assert child.get_pending_nested_set_operations() == [
            PendingOperation(kind=PendingOperationKind.MAKE_ROOM_FOR_LEAF, left=2)
        ]

    def test_queue_cleared_after_flush(self):
        """测试 flush 后队列被清空且只执行一次"""
        root = NsCategory(name="root").make_root()
        root.save(commit=True)

        child = NsCategory(name="child").insert_as_last_child_of(root)
        child.save(commit=True)

        assert child.get_pending_nested_set_operations() == []
        child.name = "renamed"
        child.save(commit=True)
        assert coords(root) == (1, 4, 0)

    def test_persisted_node_excluded_from_shift(self):
        """测试已保存但不在树中的节点入树时排除自身"""
        root = NsCategory(name="root").make_root()
        root.save(commit=True)
        node = NsCategory(name="loose")
        node.save(commit=True)

        node.insert_as_last_child_of(root)
        operation = node.get_pending_nested_set_operations()[0]
        assert operation.exclude_id == node.id

        node.save(commit=True)
        assert coords(node) == (2, 3, 1)
        assert coords(root) == (1, 4, 0)

    def test_unknown_operation_kind(self):
        """测试未知的操作类型"""
        operation = PendingOperation(kind="unknown", left=1)

        with pytest.raises(ValueError):
            operation.execute(NsCategory, self.session_scope())
