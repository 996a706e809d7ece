"""版本信息"""

__version__ = "0.1.0"
__author__ = "ynest"
__description__ = "SQLAlchemy 嵌套集合（Nested Set）树形结构引擎"
