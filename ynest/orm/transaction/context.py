"""事务上下文

一个 TransactionContext 对应一次工作单元。树操作在已有事务中调用时只加深
depth，真正的提交和回滚由最外层的 transaction() 完成。
"""

from enum import Enum
from typing import Optional

from sqlalchemy.orm import Session

from ynest.log import get_logger

from .exceptions import TransactionNotActiveError

logger = get_logger("ynest.orm.transaction")


class TransactionState(str, Enum):
    """事务状态：ACTIVE 之后只会变为 COMMITTED 或 ROLLED_BACK"""

    ACTIVE = "active"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class TransactionContext:
    """事务上下文

    Attributes:
        session: 本次工作单元使用的 session
        depth: 当前嵌套深度，最外层为 1
        abort_reason: 内层树操作失败时记录的原因，非空时事务只能回滚
    """

    def __init__(self, session: Session, suppress_commit: bool = True):
        self.session = session
        self.suppress_commit = suppress_commit
        self.state = TransactionState.ACTIVE
        self.depth = 0
        self.abort_reason: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.state == TransactionState.ACTIVE

    @property
    def is_aborted(self) -> bool:
        return self.abort_reason is not None

    def mark_aborted(self, error: BaseException) -> None:
        """标记事务只能回滚（保留第一次失败的原因）"""
        if self.abort_reason is None:
            self.abort_reason = f"{type(error).__name__}: {error}"
            logger.debug(f"事务被标记为只能回滚 (depth={self.depth}): {self.abort_reason}")

    def commit(self) -> None:
        """提交事务

        Raises:
            TransactionNotActiveError: 事务已经提交或回滚
        """
        if not self.is_active:
            raise TransactionNotActiveError(self.state.value)
        self.session.commit()
        self.state = TransactionState.COMMITTED
        logger.debug("事务已提交")

    def rollback(self) -> None:
        """回滚事务，已回滚时什么也不做"""
        if self.state == TransactionState.ROLLED_BACK:
            return
        if self.state == TransactionState.COMMITTED:
            raise TransactionNotActiveError(self.state.value)
        self.session.rollback()
        self.state = TransactionState.ROLLED_BACK
        logger.debug("事务已回滚")

    def should_suppress_commit(self) -> bool:
        """事务内 save(commit=True) 是否只 flush 不提交"""
        return self.is_active and self.suppress_commit

    def __repr__(self) -> str:
        return f"TransactionContext(state={self.state.value}, depth={self.depth})"
