"""ResourceStore backed by an async SQLAlchemy session."""
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import delete, func, inspect, select
from sqlalchemy.ext.asyncio import AsyncSession

from sitecost.models.orm_models import (
    Admin, Budget, Document, Equipment, Issue, Labor, Material,
    ProgressUpdate, Project, Task, User,
)
from sitecost.store.base import AGGREGATES, Criterion, EntityType, ResourceStore, Row

logger = logging.getLogger("sitecost-db")

MODELS: Dict[EntityType, Any] = {
    EntityType.ADMIN: Admin,
    EntityType.USER: User,
    EntityType.PROJECT: Project,
    EntityType.TASK: Task,
    EntityType.MATERIAL: Material,
    EntityType.EQUIPMENT: Equipment,
    EntityType.LABOR: Labor,
    EntityType.BUDGET: Budget,
    EntityType.ISSUE: Issue,
    EntityType.DOCUMENT: Document,
    EntityType.PROGRESS_UPDATE: ProgressUpdate,
}


def _column(model, field: str):
    try:
        return getattr(model, field)
    except AttributeError:
        raise ValueError(f"{model.__name__} has no column '{field}'")


def build_clause(model, criterion: Criterion):
    """Translate one Criterion into a SQLAlchemy boolean clause."""
    col = _column(model, criterion.field)
    value = criterion.value
    if criterion.op == "eq":
        return col.is_(None) if value is None else col == value
    if criterion.op == "ne":
        return col.is_not(None) if value is None else col != value
    if criterion.op == "lt":
        return col < value
    if criterion.op == "lte":
        return col <= value
    if criterion.op == "gt":
        return col > value
    if criterion.op == "gte":
        return col >= value
    return col.in_(list(value))


def build_select(model, criteria: Sequence[Criterion] = ()):
    stmt = select(model)
    for criterion in criteria:
        stmt = stmt.where(build_clause(model, criterion))
    return stmt


def build_aggregate(model, group_by: Sequence[str], func_name: str, column: Optional[str],
                    criteria: Sequence[Criterion] = ()):
    if func_name not in AGGREGATES:
        raise ValueError(f"Unsupported aggregate: {func_name}")
    target = _column(model, column or "id")
    agg = getattr(func, func_name)(target).label("value")
    group_cols = [_column(model, name) for name in group_by]
    stmt = select(*group_cols, agg)
    for criterion in criteria:
        stmt = stmt.where(build_clause(model, criterion))
    if group_cols:
        stmt = stmt.group_by(*group_cols)
    return stmt


def to_row(obj) -> Row:
    return {attr.key: getattr(obj, attr.key) for attr in inspect(obj).mapper.column_attrs}


class SqlAlchemyResourceStore(ResourceStore):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_by_id(self, entity: EntityType, entity_id: Any) -> Optional[Row]:
        if entity_id is None:
            return None
        obj = await self.session.get(MODELS[entity], entity_id)
        return to_row(obj) if obj is not None else None

    async def find_all(
        self,
        entity: EntityType,
        criteria: Sequence[Criterion] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Row]:
        model = MODELS[entity]
        stmt = build_select(model, criteria)
        if order_by:
            col = _column(model, order_by)
            stmt = stmt.order_by(col.desc() if descending else col.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)
        result = await self.session.execute(stmt)
        return [to_row(obj) for obj in result.scalars().all()]

    async def count(self, entity: EntityType, criteria: Sequence[Criterion] = ()) -> int:
        model = MODELS[entity]
        stmt = select(func.count()).select_from(model)
        for criterion in criteria:
            stmt = stmt.where(build_clause(model, criterion))
        return int(await self.session.scalar(stmt) or 0)

    async def aggregate(
        self,
        entity: EntityType,
        group_by: Sequence[str],
        func: str,
        column: Optional[str] = None,
        criteria: Sequence[Criterion] = (),
    ) -> List[Row]:
        stmt = build_aggregate(MODELS[entity], group_by, func, column, criteria)
        result = await self.session.execute(stmt)
        return [dict(row._mapping) for row in result.all()]

    async def create(self, entity: EntityType, attrs: Row) -> Row:
        obj = MODELS[entity](**attrs)
        self.session.add(obj)
        await self.session.flush()
        await self.session.refresh(obj)
        return to_row(obj)

    async def update(self, entity: EntityType, entity_id: Any, attrs: Row) -> Optional[Row]:
        obj = await self.session.get(MODELS[entity], entity_id)
        if obj is None:
            return None
        for key, value in attrs.items():
            setattr(obj, key, value)
        await self.session.flush()
        await self.session.refresh(obj)
        return to_row(obj)

    async def destroy(self, entity: EntityType, entity_id: Any) -> bool:
        obj = await self.session.get(MODELS[entity], entity_id)
        if obj is None:
            return False
        await self.session.delete(obj)
        await self.session.flush()
        return True

    async def destroy_where(self, entity: EntityType, criteria: Sequence[Criterion]) -> int:
        model = MODELS[entity]
        stmt = delete(model)
        for criterion in criteria:
            stmt = stmt.where(build_clause(model, criterion))
        result = await self.session.execute(stmt)
        return int(result.rowcount or 0)

    @asynccontextmanager
    async def transaction(self):
        # get_db already opened the outer transaction; nest a savepoint so a
        # failure inside the block rolls back only the block.
        if self.session.in_transaction():
            async with self.session.begin_nested():
                yield
        else:
            async with self.session.begin():
                yield
