import asyncio
import logging
import uuid
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import Table, delete, func, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from ..config.database import Base, create_db_engine
from ..core.errors import (
    AlreadyExistsError,
    NotFoundError,
    PermissionDeniedError,
    StoreError,
    UnavailableError,
)
from ..models.content import Content
from ..models.lecturer import Lecturer
from ..models.student import Download, Student

logger = logging.getLogger(__name__)

COLLECTIONS: Dict[str, Table] = {
    "content": Content.__table__,
    "lecturers": Lecturer.__table__,
    "students": Student.__table__,
    "downloads": Download.__table__,
}

_OPERATORS = {
    "==": lambda column, value: column == value,
    "!=": lambda column, value: column != value,
    "<": lambda column, value: column < value,
    "<=": lambda column, value: column <= value,
    ">": lambda column, value: column > value,
    ">=": lambda column, value: column >= value,
    "in": lambda column, value: column.in_(list(value)),
}

_PERMISSION_MARKERS = ("permission denied", "access denied", "readonly database", "read-only")


def _translate_error(exc: SQLAlchemyError, action: str) -> StoreError:
    """Map a driver failure onto the store error taxonomy"""
    message = f"{action} failed: {exc.__class__.__name__}: {getattr(exc, 'orig', None) or exc}"
    detail = str(getattr(exc, "orig", None) or exc).lower()

    if any(marker in detail for marker in _PERMISSION_MARKERS):
        return PermissionDeniedError(message)
    if isinstance(exc, (OperationalError, PoolTimeoutError)):
        return UnavailableError(message)
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return UnavailableError(message)
    if isinstance(exc, IntegrityError):
        return AlreadyExistsError(message)
    return StoreError(message)


def _table(collection: str) -> Table:
    try:
        return COLLECTIONS[collection]
    except KeyError:
        raise ValueError(f"Unknown collection: {collection}")


def _check_fields(table: Table, fields) -> None:
    unknown = [field for field in fields if field not in table.c]
    if unknown:
        raise ValueError(f"Unknown fields for {table.name}: {', '.join(unknown)}")


class CollectionQuery:
    """
    Lazy query over one collection.

    Building a query never touches the database; ``get`` and ``count`` do.
    Each builder call returns a new query so partially built queries can be
    shared.
    """

    def __init__(
        self,
        store: "DocumentStore",
        collection: str,
        filters: Sequence[Tuple[str, str, Any]] = (),
        ordering: Sequence[Tuple[str, str]] = (),
        limit_count: Optional[int] = None,
    ):
        self.store = store
        self.collection = collection
        self.table = _table(collection)
        self.filters = tuple(filters)
        self.ordering = tuple(ordering)
        self.limit_count = limit_count

    def _copy(self, **changes) -> "CollectionQuery":
        params = {
            "filters": self.filters,
            "ordering": self.ordering,
            "limit_count": self.limit_count,
        }
        params.update(changes)
        return CollectionQuery(self.store, self.collection, **params)

    def where(self, field: str, op: str, value: Any) -> "CollectionQuery":
        _check_fields(self.table, [field])
        if op not in _OPERATORS:
            raise ValueError(f"Unsupported operator: {op}")
        return self._copy(filters=self.filters + ((field, op, value),))

    def order_by(self, field: str, direction: str = "asc") -> "CollectionQuery":
        _check_fields(self.table, [field])
        if direction not in ("asc", "desc"):
            raise ValueError(f"Unsupported direction: {direction}")
        return self._copy(ordering=self.ordering + ((field, direction),))

    def limit(self, count: int) -> "CollectionQuery":
        if count < 0:
            raise ValueError("limit must not be negative")
        return self._copy(limit_count=count)

    def _conditions(self):
        return [_OPERATORS[op](self.table.c[field], value) for field, op, value in self.filters]

    def _statement(self):
        stmt = select(self.table).where(*self._conditions())
        for field, direction in self.ordering:
            column = self.table.c[field]
            stmt = stmt.order_by(column.desc() if direction == "desc" else column.asc())
        if self.limit_count is not None:
            stmt = stmt.limit(self.limit_count)
        return stmt

    async def get(self) -> List[Dict[str, Any]]:
        return await self.store._run(f"Query {self.collection}", self.store._fetch_all, self._statement())

    async def count(self) -> int:
        stmt = select(func.count()).select_from(self.table).where(*self._conditions())
        return await self.store._run(f"Count {self.collection}", self.store._scalar, stmt)


class DocumentStore:
    """Collections of flat records keyed by id, persisted with SQLAlchemy"""

    def __init__(self, engine: Optional[Engine] = None):
        self.engine = engine or create_db_engine()
        self._listeners: Dict[str, List[Callable[[str], None]]] = {}

    def create_collections(self) -> None:
        Base.metadata.create_all(self.engine)
        logger.info(f"Document collections ready on {self.engine.url.render_as_string(hide_password=True)}")

    def collection(self, name: str) -> CollectionQuery:
        return CollectionQuery(self, name)

    # ── blocking helpers (run in worker threads) ──────────────────────
    def _fetch_all(self, stmt) -> List[Dict[str, Any]]:
        with self.engine.connect() as conn:
            return [dict(row._mapping) for row in conn.execute(stmt)]

    def _scalar(self, stmt) -> Any:
        with self.engine.connect() as conn:
            return conn.execute(stmt).scalar_one()

    def _write(self, *statements, expect_row: bool = False) -> None:
        with self.engine.begin() as conn:
            result = None
            for stmt in statements:
                result = conn.execute(stmt)
            if expect_row and result is not None and result.rowcount == 0:
                raise NotFoundError("No document matches the given key")

    async def _run(self, action: str, func: Callable, *args, **kwargs):
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except SQLAlchemyError as e:
            raise _translate_error(e, action) from e

    # ── record operations ────────────────────────────────────────────
    async def get(self, collection: str, key: str) -> Optional[Dict[str, Any]]:
        table = _table(collection)
        rows = await self._run(
            f"Get {collection}/{key}", self._fetch_all, select(table).where(table.c.id == key)
        )
        return rows[0] if rows else None

    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        """Insert a record under a store-generated id and return the id"""
        table = _table(collection)
        _check_fields(table, data)
        key = uuid.uuid4().hex
        await self._run(f"Add to {collection}", self._write, insert(table).values({**data, "id": key}))
        self._notify(collection)
        return key

    async def create(self, collection: str, key: str, data: Dict[str, Any]) -> None:
        """Insert a record under ``key``; raises AlreadyExistsError if the key is taken"""
        table = _table(collection)
        _check_fields(table, data)
        await self._run(f"Create {collection}/{key}", self._write, insert(table).values({**data, "id": key}))
        self._notify(collection)

    async def set(self, collection: str, key: str, data: Dict[str, Any]) -> None:
        """Create or fully replace the record stored under ``key``"""
        table = _table(collection)
        _check_fields(table, data)
        await self._run(
            f"Set {collection}/{key}",
            self._write,
            delete(table).where(table.c.id == key),
            insert(table).values({**data, "id": key}),
        )
        self._notify(collection)

    async def update(self, collection: str, key: str, changes: Dict[str, Any]) -> None:
        table = _table(collection)
        _check_fields(table, changes)
        if "id" in changes:
            raise ValueError("The id of a record cannot be changed")
        await self._run(
            f"Update {collection}/{key}",
            self._write,
            update(table).where(table.c.id == key).values(changes),
            expect_row=True,
        )
        self._notify(collection)

    async def delete(self, collection: str, key: str) -> None:
        table = _table(collection)
        await self._run(f"Delete {collection}/{key}", self._write, delete(table).where(table.c.id == key))
        self._notify(collection)

    async def increment(self, collection: str, key: str, field: str, amount: int = 1) -> None:
        """Add ``amount`` to a numeric field inside the database, never read-modify-write"""
        table = _table(collection)
        _check_fields(table, [field])
        column = table.c[field]
        await self._run(
            f"Increment {collection}/{key}.{field}",
            self._write,
            update(table).where(table.c.id == key).values({field: column + amount}),
            expect_row=True,
        )
        self._notify(collection)

    async def ping(self) -> bool:
        await self._run("Ping", self._scalar, select(1))
        return True

    # ── change notifications ─────────────────────────────────────────
    def watch(self, collection: str, listener: Callable[[str], None]) -> Callable[[], None]:
        """Call ``listener(collection)`` after every write to the collection"""
        _table(collection)
        listeners = self._listeners.setdefault(collection, [])
        listeners.append(listener)

        def unwatch() -> None:
            if listener in listeners:
                listeners.remove(listener)

        return unwatch

    def _notify(self, collection: str) -> None:
        for listener in list(self._listeners.get(collection, [])):
            try:
                listener(collection)
            except Exception as e:
                logger.error(f"Change listener for {collection} failed: {e}")
