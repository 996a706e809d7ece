"""事务管理器

树的移动、子树删除和整树删除都由多条批量语句组成，它们通过
transaction_manager.transaction() 保证要么全部生效，要么全部回滚。
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Generator, Optional

from sqlalchemy.orm import Session

from ynest.log import get_logger

from .context import TransactionContext
from .exceptions import TransactionAbortedError

logger = get_logger("ynest.orm.transaction")

# 当前事务上下文（线程/协程隔离）
_current_transaction: ContextVar[Optional[TransactionContext]] = ContextVar(
    "_current_transaction", default=None
)


def get_current_transaction() -> Optional[TransactionContext]:
    """获取当前事务上下文，不在事务中则返回 None"""
    return _current_transaction.get()


class TransactionManager:
    """事务管理器（单例）

    已有活跃事务时，transaction() 直接加入，不会提前提交；内层抛出异常时
    外层事务被标记为只能回滚，避免把执行了一半的区间平移提交出去。

    使用示例:
        from ynest.orm import transaction_manager as tm

        with tm.transaction(session):
            node.move_to_first_child_of(parent)
            other.delete_descendants()
        # 两个操作一起提交，任一失败则整体回滚
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self.suppress_commit = True
        self._initialized = True

    def configure(self, suppress_commit: bool = None) -> None:
        """配置事务内 save(commit=True) 是否只 flush"""
        if suppress_commit is not None:
            self.suppress_commit = suppress_commit

    @property
    def current_transaction(self) -> Optional[TransactionContext]:
        return _current_transaction.get()

    def is_in_transaction(self) -> bool:
        tx = self.current_transaction
        return tx is not None and tx.is_active

    def should_suppress_commit(self) -> bool:
        tx = self.current_transaction
        return tx is not None and tx.should_suppress_commit()

    @contextmanager
    def transaction(
        self,
        session: Session = None,
        auto_commit: bool = True,
        suppress_commit: bool = None,
    ) -> Generator[TransactionContext, None, None]:
        """进入事务

        Args:
            session: 数据库会话，不传则使用全局 scoped_session
            auto_commit: 最外层正常退出时是否提交
            suppress_commit: 事务内是否抑制 save(commit=True)，None 使用全局配置

        Raises:
            TransactionAbortedError: 内层操作失败后外层仍正常退出
        """
        current = self.current_transaction
        if current is not None and current.is_active:
            current.depth += 1
            try:
                yield current
            except Exception as e:
                current.mark_aborted(e)
                raise
            finally:
                current.depth -= 1
            return

        if session is None:
            from ..db_session import db_manager
            session = db_manager.get_session()
        if suppress_commit is None:
            suppress_commit = self.suppress_commit

        ctx = TransactionContext(session, suppress_commit=suppress_commit)
        ctx.depth = 1
        token = _current_transaction.set(ctx)
        try:
            try:
                yield ctx
            except Exception:
                ctx.rollback()
                raise

            if ctx.is_aborted:
                ctx.rollback()
                raise TransactionAbortedError(ctx.abort_reason)
            if auto_commit and ctx.is_active:
                try:
                    ctx.commit()
                except Exception as e:
                    logger.warning(f"事务提交失败，已回滚: {e}")
                    ctx.rollback()
                    raise
        finally:
            ctx.depth = 0
            _current_transaction.reset(token)


# 全局单例
transaction_manager = TransactionManager()
