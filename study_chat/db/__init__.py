from __future__ import annotations
from typing import (
    Any,
    Callable,
    Generic,
    Sequence,
    Type,
    TypeVar,
)
from sqlalchemy import (
    ColumnExpressionArgument,
    Engine,
    event,
    select,
    delete,
    create_engine,
    NullPool,
    asc,
    desc,
)
from sqlalchemy.orm import Session, scoped_session, sessionmaker
from study_chat.models.base import Base
from study_chat.settings import config


V = TypeVar("V", bound=Type)


def create_db_engine(url: str) -> Engine:
    engine = create_engine(url, poolclass=NullPool)
    if engine.dialect.name == "sqlite":
        # SQLite only honours ON DELETE CASCADE with the pragma set per connection.
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def init_db(url: str | None = None) -> None:
    engine = create_db_engine(url or config.db_url)
    Base.metadata.create_all(engine)
    engine.dispose()


class CRUDCapability(Generic[V]):
    resource_db: Type[V]

    def __init__(self, resource_db: Type[V], url: str | None = None) -> None:
        self.resource_db = resource_db
        self.url = url
        self._session_factory: Callable[..., Session] | None = None

    def db_row_to_model(self, row: V) -> dict[str, Any]:
        return {field.name: getattr(row, field.name) for field in row.__table__.c}

    def db_rows_to_model_list(self, rows: Sequence[V]) -> list[dict[str, Any]]:
        return [self.db_row_to_model(r) for r in rows]

    def get_session_factory(self) -> Callable[..., Session]:
        """
        Returns the session factory for this resource, building it on first use
        from the url given at construction or the configured database url.
        """
        if self._session_factory is None:
            self._session_factory = self.create_factory(self.url or config.db_url)
        return self._session_factory

    def create_factory(self, url: str) -> Callable[..., Session]:
        engine = create_db_engine(url)
        session_factory = sessionmaker(engine, expire_on_commit=False)

        session_db: Callable[..., Session] = scoped_session(
            session_factory=session_factory
        )
        return session_db

    def get_session(
        self,
        factory: Callable[..., Session],
    ):
        session = factory()
        try:
            yield session
        finally:
            session.close()

    def get_sync_session(self) -> Session:
        session = next(self.get_session(factory=self.get_session_factory()))
        return session

    def _order_clauses(self, order_by: list[str]) -> list:
        clauses = []
        for item in order_by:
            if item.startswith("-"):
                clauses.append(desc(getattr(self.resource_db, item[1:])))
            else:
                clauses.append(asc(getattr(self.resource_db, item)))
        return clauses

    def list_resource(
        self,
        where: list["ColumnExpressionArgument[bool]"] | None = None,
        limit: int | None = None,
        offset: int | None = None,
        order_by: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        stmt = select(self.resource_db)
        if where is not None:
            stmt = stmt.where(*where)
        if order_by is not None:
            stmt = stmt.order_by(*self._order_clauses(order_by))
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset is not None:
            stmt = stmt.offset(offset)

        session = self.get_sync_session()
        try:
            resources = session.scalars(stmt).all()
            return self.db_rows_to_model_list(resources)
        finally:
            session.close()

    def get_resource(
        self,
        resource_id: str | int | None,
        where: list["ColumnExpressionArgument[bool]"] | None = None,
    ) -> dict[str, Any] | None:
        stmt = select(self.resource_db)
        if resource_id is not None:
            stmt = stmt.where(self.resource_db.id == resource_id)  # type: ignore
        if where is not None:
            stmt = stmt.where(*where)

        session = self.get_sync_session()
        try:
            resource = session.scalars(stmt).first()
            if resource is None:
                return None
            return self.db_row_to_model(resource)
        finally:
            session.close()

    def create_resource(
        self,
        data: dict[str, Any],
    ) -> dict[str, Any]:
        resource = self.resource_db(**data)  # type: ignore
        session = self.get_sync_session()
        try:
            session.add(resource)
            session.flush()
            session.commit()
            session.refresh(resource)
            return self.db_row_to_model(resource)  # type: ignore
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def delete_resource(
        self,
        resource_id: str | int | None = None,
        where: list["ColumnExpressionArgument[bool]"] | None = None,
    ) -> dict[str, Any] | None:
        stmt = select(self.resource_db)
        if resource_id is not None:
            stmt = stmt.where(self.resource_db.id == resource_id)  # type: ignore
        if where is not None:
            stmt = stmt.where(*where)

        session = self.get_sync_session()
        try:
            resource = session.scalars(stmt).first()
            if resource is None:
                return None
            deleted = self.db_row_to_model(resource)
            session.delete(resource)
            session.flush()
            session.commit()
            return deleted
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def delete_resources(
        self,
        where: list["ColumnExpressionArgument[bool]"],
    ) -> int:
        stmt = delete(self.resource_db).where(*where)
        session = self.get_sync_session()
        try:
            result = session.execute(stmt)
            session.commit()
            return result.rowcount or 0
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def update_resource(
        self,
        data: dict[str, Any] | None,
        resource_id: str | int | None = None,
        where: list["ColumnExpressionArgument[bool]"] | None = None,
    ) -> dict[str, Any] | None:
        stmt = select(self.resource_db)
        if resource_id is not None:
            stmt = stmt.where(self.resource_db.id == resource_id)  # type: ignore
        if where is not None:
            stmt = stmt.where(*where)

        session = self.get_sync_session()
        try:
            resource = session.scalars(stmt).first()
            if resource is None:
                return None
            if data is not None:
                for k in data:
                    setattr(resource, k, data[k])
            session.add(resource)
            session.flush()
            session.commit()
            session.refresh(resource)
            return self.db_row_to_model(resource)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
