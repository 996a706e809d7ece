"""ORM模块

- CoreModel: 模型基类（主键、自动表名、save/delete）
- 数据库会话: init_database / db_session_scope
- 事务: transaction_manager，树的批量平移都在事务中执行
- 嵌套集合: NestedSetMixin 及字段、查询、配置、异常

使用示例:
    from ynest.orm import CoreModel, init_database
    from ynest.orm import NestedSetMixin, NestedSetFieldsMixin

    init_database("sqlite:///./tree.db")

    class Category(CoreModel, NestedSetFieldsMixin, NestedSetMixin):
        name: Mapped[str] = mapped_column(String(100))
"""

from .core_model import CoreModel, Base
from .db_session import (
    db_manager,
    DatabaseManager,
    create_tree_engine,
    init_database,
    get_engine,
    db_session_scope,
)
from .transaction import (
    TransactionError,
    TransactionNotActiveError,
    TransactionAbortedError,
    TransactionState,
    TransactionContext,
    TransactionManager,
    transaction_manager,
    get_current_transaction,
)

# 嵌套集合
from .nested_set import (
    NestedSetMixin,
    NestedSetTableMixin,
    NestedSetFieldsMixin,
    ScopedNestedSetFieldsMixin,
    NestedSetQuery,
    PendingOperation,
    PendingOperationKind,
    NestedSetConfig,
    configure_nested_set,
    NestedSetError,
    DuplicateRootError,
    InvalidRootMutationError,
    AlreadyInTreeError,
    NotInTreeError,
    CrossScopeError,
    CyclicMoveError,
    InvalidSiblingTargetError,
    RootDeletionError,
    NodeNotPersistedError,
    build_tree_list,
    flatten_tree,
)

__all__ = [
    "Base",
    "CoreModel",
    "db_manager",
    "DatabaseManager",
    "create_tree_engine",
    "init_database",
    "get_engine",
    "db_session_scope",
    "TransactionError",
    "TransactionNotActiveError",
    "TransactionAbortedError",
    "TransactionState",
    "TransactionContext",
    "TransactionManager",
    "transaction_manager",
    "get_current_transaction",
    "NestedSetMixin",
    "NestedSetTableMixin",
    "NestedSetFieldsMixin",
    "ScopedNestedSetFieldsMixin",
    "NestedSetQuery",
    "PendingOperation",
    "PendingOperationKind",
    "NestedSetConfig",
    "configure_nested_set",
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
    "build_tree_list",
    "flatten_tree",
]
