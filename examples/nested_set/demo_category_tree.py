"""嵌套集合使用示例

演示 NestedSetMixin 的常见场景：
1. 创建根节点并逐个插入子节点
2. 导航查询（子节点、祖先、兄弟、子树）
3. 在事务中移动子树
4. 删除节点与删除子孙
5. 一张表存放多棵树（scope）
"""

import sys
from pathlib import Path

# 添加项目根目录到 path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from ynest.log import setup_logger
from ynest.orm import (
    Base,
    CoreModel,
    init_database,
    transaction_manager as tm,
    NestedSetMixin,
    NestedSetFieldsMixin,
    ScopedNestedSetFieldsMixin,
    configure_nested_set,
    CyclicMoveError,
)


# ==================== 模型定义 ====================

class Category(CoreModel, NestedSetFieldsMixin, NestedSetMixin):
    """商品分类 - 单棵树"""
    __tablename__ = "demo_category"

    name: Mapped[str] = mapped_column(String(100), comment="分类名称")


class Menu(CoreModel, ScopedNestedSetFieldsMixin, NestedSetMixin):
    """站点菜单 - 每个站点（scope）一棵树"""
    __tablename__ = "demo_menu"

    title: Mapped[str] = mapped_column(String(100), comment="菜单标题")


def print_tree(model, scope=None):
    for node in model.retrieve_tree(scope):
        label = getattr(node, "name", None) or getattr(node, "title", "")
        print(f"{'    ' * node.level}{label}  [{node.left}, {node.right}]")


# ==================== 示例 1: 构建树 ====================

def demo_build():
    print("\n=== 示例 1: 构建树 ===")
    root = Category(name="全部商品").make_root()
    root.save(commit=True)

    for name in ("数码", "图书", "服装"):
        Category(name=name).insert_as_last_child_of(root).save(commit=True)

    digital = Category.query.filter_by(name="数码").one()
    Category(name="手机").insert_as_first_child_of(digital).save(commit=True)
    Category(name="电脑").insert_as_last_child_of(digital).save(commit=True)

    books = Category.query.filter_by(name="图书").one()
    Category(name="小说").insert_as_next_sibling_of(books).save(commit=True)

    print_tree(Category)


# ==================== 示例 2: 导航查询 ====================

def demo_navigation():
    print("\n=== 示例 2: 导航查询 ===")
    root = Category.retrieve_root()
    phone = Category.query.filter_by(name="手机").one()

    print("根节点子分类:", [c.name for c in root.get_children()])
    print("手机的祖先:", [a.name for a in phone.get_ancestors()])
    print("手机的兄弟:", [s.name for s in phone.get_siblings()])
    print("数码子树节点数:", phone.get_parent().count_descendants())
    print("手机是否叶子:", phone.is_leaf())


# ==================== 示例 3: 事务中移动 ====================

def demo_move():
    print("\n=== 示例 3: 事务中移动子树 ===")
    digital = Category.query.filter_by(name="数码").one()
    clothes = Category.query.filter_by(name="服装").one()
    novel = Category.query.filter_by(name="小说").one()
    books = Category.query.filter_by(name="图书").one()

    with tm.transaction():
        digital.move_to_next_sibling_of(clothes)
        novel.move_to_first_child_of(books)

    print_tree(Category)

    try:
        digital.move_to_first_child_of(digital.get_first_child())
    except CyclicMoveError as e:
        print(f"拒绝移动: {e}")


# ==================== 示例 4: 删除 ====================

def demo_delete():
    print("\n=== 示例 4: 删除 ===")
    computer = Category.query.filter_by(name="电脑").one()
    computer.delete(commit=True)

    books = Category.query.filter_by(name="图书").one()
    print("删除图书下的子孙:", books.delete_descendants())

    print_tree(Category)


# ==================== 示例 5: 多棵树 ====================

def demo_scope():
    print("\n=== 示例 5: 多棵树 ===")
    for site in (1, 2):
        home = Menu(title=f"站点{site}首页", scope=site).make_root()
        home.save(commit=True)
        Menu(title="关于我们").insert_as_last_child_of(home).save(commit=True)
        Menu(title="联系方式").insert_as_last_child_of(home).save(commit=True)

    print("全部根节点:", [(r.scope, r.title) for r in Menu.retrieve_roots()])
    print_tree(Menu, scope=2)
    print("站点 1 嵌套结构:", Menu.get_tree_list(1))


if __name__ == "__main__":
    setup_logger(level="INFO")
    configure_nested_set(log_shifts=True)

    engine, _ = init_database("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)

    demo_build()
    demo_navigation()
    demo_move()
    demo_delete()
    demo_scope()
