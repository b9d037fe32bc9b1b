"""
Record store adapter: typed predicates and CRUD over the ORM models on an explicitly passed session.

Services never build ad-hoc filter dicts; they compose the closed predicate set below
(equals, in_set, exists, missing, dangling, any_of) and hand it to RecordStore.
"""

import logging
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Type, TypeVar

from fastapi import status
from sqlalchemy import delete as sa_delete
from sqlalchemy import false, func, or_, select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from app.core.config import settings
from app.core.exceptions import ServiceError, StoreFailure

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT")
ResultT = TypeVar("ResultT")

Predicate = ColumnElement


# --- Predicate builders ---
def equals(column, value: Any) -> Predicate:
    if value is None:
        return column.is_(None)
    return column == value


def in_set(column, values: Iterable[Any]) -> Predicate:
    """Membership. An empty set matches nothing."""
    values = list(values)
    if not values:
        return false()
    return column.in_(values)


def exists(column) -> Predicate:
    return column.is_not(None)


def missing(column) -> Predicate:
    return column.is_(None)


def dangling(column, target_column) -> Predicate:
    """Reference is set but resolves to no row of the target table."""
    return column.is_not(None) & ~column.in_(select(target_column))


def any_of(*predicates: Predicate) -> Predicate:
    return or_(*predicates)


class RecordStore:
    """CRUD + query access bound to one request-scoped session. Never commits."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, model: Type[ModelT], record_id: Optional[str]) -> Optional[ModelT]:
        if not record_id:
            return None
        return await self.session.get(model, record_id)

    async def find(
        self,
        model: Type[ModelT],
        *predicates: Predicate,
        order_by: Optional[Any] = None,
    ) -> List[ModelT]:
        stmt = select(model).where(*predicates)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_one(self, model: Type[ModelT], *predicates: Predicate) -> Optional[ModelT]:
        result = await self.session.execute(select(model).where(*predicates).limit(1))
        return result.scalars().first()

    async def count(self, model: Type[ModelT], *predicates: Predicate, distinct: Optional[Any] = None) -> int:
        target = func.count(func.distinct(distinct)) if distinct is not None else func.count()
        stmt = select(target).select_from(model).where(*predicates)
        return int((await self.session.execute(stmt)).scalar() or 0)

    async def insert(self, record: ModelT) -> ModelT:
        self.session.add(record)
        await self.session.flush()
        return record

    async def update(self, record: ModelT, **fields: Any) -> ModelT:
        for name, value in fields.items():
            setattr(record, name, value)
        await self.session.flush()
        return record

    async def delete(self, model: Type[ModelT], *predicates: Predicate) -> int:
        if not predicates:
            raise ValueError("Refusing to delete without a predicate")
        result = await self.session.execute(
            sa_delete(model).where(*predicates).execution_options(synchronize_session="fetch")
        )
        return int(result.rowcount or 0)


async def run_with_retry(
    session: AsyncSession,
    unit_of_work: Callable[[], Awaitable[ResultT]],
    *,
    label: str = "unit_of_work",
    attempts: Optional[int] = None,
) -> ResultT:
    """
    Run `unit_of_work` and commit. A transient store error rolls back and re-runs the whole
    unit (settings.store_retry_attempts extra times, default once); a further failure raises
    StoreFailure. ServiceError raised by the unit rolls back and propagates unchanged.

    The unit must re-load anything it mutates: a rollback expires every loaded instance.
    """
    retries = settings.store_retry_attempts if attempts is None else attempts
    attempt = 0
    while True:
        try:
            result = await unit_of_work()
            await session.commit()
            return result
        except ServiceError:
            await session.rollback()
            raise
        except IntegrityError as exc:
            await session.rollback()
            logger.warning("store_conflict op=%s error=%s", label, exc.orig)
            raise ServiceError("Conflicting record already exists", status.HTTP_409_CONFLICT) from exc
        except DBAPIError as exc:
            await session.rollback()
            if attempt >= retries:
                logger.error("store_failure op=%s attempts=%d error=%s", label, attempt + 1, exc.orig)
                raise StoreFailure() from exc
            attempt += 1
            logger.warning("store_retry op=%s attempt=%d error=%s", label, attempt, exc.orig)
