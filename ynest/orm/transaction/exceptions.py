"""事务异常"""


class TransactionError(Exception):
    """事务错误基类"""
    pass


class TransactionNotActiveError(TransactionError):
    """事务已经结束（提交或回滚）后仍被使用"""

    def __init__(self, state: str):
        self.state = state
        super().__init__(f"事务已结束（{state}），不能再提交")


class TransactionAbortedError(TransactionError):
    """加入外层事务的树操作失败后，外层事务仍试图提交

    区间平移已经执行了一部分，这样的事务只能回滚。
    """

    def __init__(self, reason: str = ""):
        self.reason = reason
        message = "事务内的树操作失败，事务已回滚"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
