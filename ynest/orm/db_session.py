"""数据库会话管理

树引擎只需要一个引擎和一个线程隔离的 scoped_session：

- init_database(): 按 URL 或 DatabaseSettings 创建引擎和 scoped_session，并绑定 CoreModel.query
- get_engine(): 获取已创建的引擎
- db_session_scope(): 一次工作单元，正常退出提交，异常回滚
"""

from contextlib import contextmanager
from typing import Any, Callable, Generator, Tuple

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

from ynest.log import get_logger

logger = get_logger("ynest.orm.session")

__all__ = [
    "db_manager",
    "DatabaseManager",
    "create_tree_engine",
    "init_database",
    "get_engine",
    "db_session_scope",
]

_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def create_tree_engine(database_url: str, echo: bool = False) -> Engine:
    """创建数据库引擎

    SQLite 内存库使用 StaticPool，所有 session 共享同一个连接，才能看到同一棵树。
    """
    if database_url in _MEMORY_URLS:
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, connect_args={"check_same_thread": False})
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


class DatabaseManager:
    """保存全局引擎与 scoped_session

    使用示例:
        from ynest.orm import db_manager

        db_manager.init("sqlite:///./tree.db")
        session = db_manager.get_session()
    """

    def __init__(self):
        self._engine = None
        self._sessions = None

    @property
    def engine(self) -> Engine:
        """Raises: RuntimeError 数据库未初始化"""
        if self._engine is None:
            raise RuntimeError("数据库未初始化，请先调用 init_database()")
        return self._engine

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    def init(
        self,
        database_url: str = None,
        echo: bool = False,
        config: Any = None,
        scopefunc: Callable = None,
        bind_query: bool = True,
    ) -> Tuple[Engine, scoped_session]:
        """创建引擎与 scoped_session

        Args:
            database_url: 数据库连接URL
            echo: 是否输出SQL语句
            config: DatabaseSettings，提供时覆盖 database_url 和 echo
            scopefunc: session 作用域函数，默认按线程隔离
            bind_query: 是否把 CoreModel.query 绑定到新的 scoped_session

        Raises:
            ValueError: 没有提供数据库URL
        """
        if config is not None:
            database_url = config.url or database_url
            echo = config.echo

        if not database_url:
            raise ValueError("database_url 是必需的，请通过参数或 config 提供")

        if self._engine is not None:
            self.dispose()

        self._engine = create_tree_engine(database_url, echo=echo)
        self._sessions = scoped_session(
            sessionmaker(bind=self._engine, autoflush=True),
            scopefunc=scopefunc,
        )

        if bind_query:
            # 延迟导入避免循环依赖
            from .core_model import CoreModel
            CoreModel.query = self._sessions.query_property()

        logger.info(f"数据库已初始化: {self._engine.url.render_as_string(hide_password=True)}")
        return self._engine, self._sessions

    def get_session(self) -> Session:
        """获取当前作用域的 session"""
        if self._sessions is None:
            raise RuntimeError("数据库未初始化，请先调用 init_database()")
        return self._sessions()

    def remove_session(self) -> None:
        """关闭并移除当前作用域的 session"""
        if self._sessions is not None:
            self._sessions.remove()

    def dispose(self) -> None:
        """释放引擎并重置状态"""
        self.remove_session()
        if self._engine is not None:
            self._engine.dispose()
            logger.debug("数据库引擎已释放")
        self._engine = None
        self._sessions = None


db_manager = DatabaseManager()


def init_database(
    database_url: str = None,
    echo: bool = False,
    config: Any = None,
    scopefunc: Callable = None,
) -> Tuple[Engine, scoped_session]:
    """初始化数据库，参数见 DatabaseManager.init()

    使用示例:
        engine, session = init_database(config=settings.database)
        Base.metadata.create_all(bind=engine)
    """
    return db_manager.init(database_url, echo=echo, config=config, scopefunc=scopefunc)


def get_engine() -> Engine:
    return db_manager.engine


@contextmanager
def db_session_scope(auto_commit: bool = True) -> Generator[Session, None, None]:
    """一次工作单元：正常退出时提交，异常时回滚，最后移除 session

    使用示例:
        with db_session_scope() as session:
            child = Category(name="python").insert_as_last_child_of(root)
            session.add(child)
    """
    session = db_manager.get_session()
    try:
        yield session
        if auto_commit:
            session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        db_manager.remove_session()
