"""事务管理模块

- transaction_manager.transaction(): 开启或加入事务
- 事务内 save(commit=True) 只 flush，由最外层统一提交
- 加入外层事务的操作失败后，外层事务只能回滚

使用示例:
    from ynest.orm import transaction_manager as tm

    with tm.transaction(session):
        node.move_to_next_sibling_of(target)
        other.delete_descendants()
"""

from .exceptions import (
    TransactionError,
    TransactionNotActiveError,
    TransactionAbortedError,
)
from .context import TransactionContext, TransactionState
from .manager import (
    TransactionManager,
    transaction_manager,
    get_current_transaction,
)

__all__ = [
    "TransactionError",
    "TransactionNotActiveError",
    "TransactionAbortedError",
    "TransactionState",
    "TransactionContext",
    "TransactionManager",
    "transaction_manager",
    "get_current_transaction",
]
