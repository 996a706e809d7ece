"""ORM 工具函数

提供通用的命名转换工具。
"""
import re


def to_snake_case(name: str) -> str:
    """驼峰命名转下划线命名（支持连续大写缩写如 API、URL）

    Examples:
        >>> to_snake_case("MenuNode")
        'menu_node'
        >>> to_snake_case("APICategory")
        'api_category'
    """
    # 连续大写后跟大写+小写：APICategory → API_Category
    result = re.sub(r'([A-Z\d]+)([A-Z][a-z])', r'\1_\2', name)
    # 小写字母后跟大写：menuNode → menu_Node
    result = re.sub(r'([a-z\d])([A-Z])', r'\1_\2', result)
    return result.lower()
