"""嵌套集合工具函数

提供树形数据处理的工具函数：
- build_tree_list: 把按先序遍历排序的节点构建为嵌套字典结构
- flatten_tree: 把嵌套字典结构展平为列表
"""

from typing import Any, Callable, Dict, List, Optional


def build_tree_list(
    nodes: List[Any],
    children_field: str = "children",
    serializer: Optional[Callable[[Any], Dict[str, Any]]] = None,
) -> List[Dict[str, Any]]:
    """将按左值排序的节点列表构建为嵌套树结构

    嵌套集合的先序遍历结果中，每个节点的父节点一定是栈中最近一个
    右值大于该节点右值的节点，因此一次扫描即可完成构建。

    Args:
        nodes: 按 left 升序排列的节点（模型实例）列表
        children_field: 子节点列表字段名（输出中使用）
        serializer: 节点序列化函数，默认调用 node.to_dict()

    Returns:
        嵌套的树形结构列表

    使用示例:
        tree = build_tree_list(Category.retrieve_tree())
        # [
        #     {"id": 1, "name": "root", "left": 1, "right": 6, "level": 0, "children": [
        #         {"id": 2, "name": "A", "left": 2, "right": 3, "level": 1, "children": []},
        #         {"id": 3, "name": "B", "left": 4, "right": 5, "level": 1, "children": []},
        #     ]},
        # ]
    """
    if not nodes:
        return []

    if serializer is None:
        serializer = lambda node: node.to_dict()

    roots: List[Dict[str, Any]] = []
    # (右值, 节点字典)
    stack: List[tuple] = []

    for node in nodes:
        item = dict(serializer(node))
        item[children_field] = []

        while stack and stack[-1][0] < node.left:
            stack.pop()

        if stack:
            stack[-1][1][children_field].append(item)
        else:
            roots.append(item)

        stack.append((node.right, item))

    return roots


def flatten_tree(
    tree: List[Dict[str, Any]],
    children_field: str = "children",
) -> List[Dict[str, Any]]:
    """将嵌套树结构展平为先序遍历顺序的列表（不含 children 字段）"""
    result: List[Dict[str, Any]] = []
    for node in tree:
        node_copy = dict(node)
        children = node_copy.pop(children_field, [])
        result.append(node_copy)
        if children:
            result.extend(flatten_tree(children, children_field))
    return result


__all__ = ["build_tree_list", "flatten_tree"]
