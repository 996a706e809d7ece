"""
ORM基础模型

树节点模型继承 CoreModel，获得主键、自动表名和 save/delete 等便捷方法。
"""

from __future__ import annotations

from datetime import datetime
from typing import ClassVar, TYPE_CHECKING

from sqlalchemy import DateTime, Integer, func, inspect
from sqlalchemy.orm import (
    Mapped,
    Query,
    Session,
    declarative_base,
    declared_attr,
    mapped_column,
    object_session,
)

from ynest.log import get_logger

from .utils import to_snake_case

if TYPE_CHECKING:
    from typing_extensions import Self


logger = get_logger("ynest.orm")

Base = declarative_base()


class CoreModel(Base):
    """ORM基础模型类

    - 自增整数主键 id 与创建时间 created_at
    - 类名驼峰转下划线作为默认表名（MenuNode -> menu_node）
    - save(commit=True) 在事务上下文中只 flush，由事务统一提交

    使用示例:
        class Category(CoreModel, NestedSetFieldsMixin, NestedSetMixin):
            name: Mapped[str] = mapped_column(String(50))

        Category(name="books").make_root().save(commit=True)
    """
    __abstract__ = True

    # init_database() 或测试代码通过 scoped_session.query_property() 绑定
    if TYPE_CHECKING:
        query: ClassVar[Query[Self]]

    @declared_attr.directive
    def __tablename__(cls) -> str:
        name = cls.__name__
        if "_" in name:
            raise ValueError(f"{name} 类名中包含下划线，请显式指定 __tablename__")
        return to_snake_case(name)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, comment="主键")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        server_default=func.now(),
        comment="创建时间",
    )

    def __repr__(self):
        return f"<{self.__class__.__name__} id={inspect(self).dict.get('id')}>"

    @property
    def session(self) -> Session:
        """对象已绑定的 session，没有则使用模型类的默认 session"""
        return object_session(self) or self.__class__.get_session()

    @classmethod
    def get_session(cls) -> Session:
        query = getattr(cls, "query", None)
        if query is not None:
            return query.session
        from .db_session import db_manager
        return db_manager.get_session()

    # ==================== CRUD ====================

    def save(self, commit: bool = False) -> Self:
        """加入 session，commit=True 时提交

        事务上下文中 commit=True 只 flush，保证主键和树坐标已写入，
        提交由最外层事务完成。
        """
        session = self.session
        session.add(self)
        self._finish(session, commit)
        return self

    def delete(self, commit: bool = False) -> None:
        """删除对象；树节点的子孙与区间空隙在 flush 时处理"""
        session = self.session
        session.delete(self)
        self._finish(session, commit)

    def _finish(self, session: Session, commit: bool) -> None:
        if not commit:
            return
        from .transaction import transaction_manager
        if transaction_manager.should_suppress_commit():
            logger.debug(f"{self!r}: 事务中 commit=True 改为 flush")
            session.flush()
            return
        session.commit()

    @classmethod
    def get(cls, id: int):
        """根据ID获取对象，不存在返回None"""
        return cls.query.filter_by(id=id).one_or_none()

    @classmethod
    def get_all(cls):
        return cls.query.all()

    def to_dict(self, exclude: set = None) -> dict:
        """列属性转换为字典，build_tree_list 默认用它序列化节点"""
        exclude = exclude or set()
        return {
            attr.key: getattr(self, attr.key)
            for attr in inspect(self).mapper.column_attrs
            if attr.key not in exclude
        }
