"""
ResourceStore — the narrow persistence interface the cost services call.

Rows cross this boundary as plain dicts keyed by column name, so the rollup
code never touches ORM instances or sessions directly. Filters are a tuple
of ``Criterion`` values ANDed together.
"""
import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, AsyncContextManager, Dict, Iterable, List, Optional, Sequence

Row = Dict[str, Any]

OPERATORS = ("eq", "ne", "lt", "lte", "gt", "gte", "in")
AGGREGATES = ("count", "sum", "avg", "min", "max")


class EntityType(str, enum.Enum):
    ADMIN = "admin"
    USER = "user"
    PROJECT = "project"
    TASK = "task"
    MATERIAL = "material"
    EQUIPMENT = "equipment"
    LABOR = "labor"
    BUDGET = "budget"
    ISSUE = "issue"
    DOCUMENT = "document"
    PROGRESS_UPDATE = "progress_update"


@dataclass(frozen=True)
class Criterion:
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in OPERATORS:
            raise ValueError(f"Unsupported operator: {self.op}")


def eq(field: str, value: Any) -> Criterion:
    return Criterion(field, "eq", value)


def ne(field: str, value: Any) -> Criterion:
    return Criterion(field, "ne", value)


def lt(field: str, value: Any) -> Criterion:
    return Criterion(field, "lt", value)


def lte(field: str, value: Any) -> Criterion:
    return Criterion(field, "lte", value)


def gte(field: str, value: Any) -> Criterion:
    return Criterion(field, "gte", value)


def is_in(field: str, values: Iterable[Any]) -> Criterion:
    return Criterion(field, "in", tuple(values))


class ResourceStore(ABC):
    """Async CRUD + aggregate primitives over the construction entities."""

    @abstractmethod
    async def find_by_id(self, entity: EntityType, entity_id: Any) -> Optional[Row]:
        ...

    @abstractmethod
    async def find_all(
        self,
        entity: EntityType,
        criteria: Sequence[Criterion] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Row]:
        ...

    @abstractmethod
    async def count(self, entity: EntityType, criteria: Sequence[Criterion] = ()) -> int:
        ...

    @abstractmethod
    async def aggregate(
        self,
        entity: EntityType,
        group_by: Sequence[str],
        func: str,
        column: Optional[str] = None,
        criteria: Sequence[Criterion] = (),
    ) -> List[Row]:
        """
        Group rows and apply ``func`` to ``column`` (``id`` for counts).

        Returns one dict per group holding the group-by keys plus ``value``.
        With an empty ``group_by`` a single row is returned.
        """

    @abstractmethod
    async def create(self, entity: EntityType, attrs: Row) -> Row:
        ...

    @abstractmethod
    async def update(self, entity: EntityType, entity_id: Any, attrs: Row) -> Optional[Row]:
        ...

    @abstractmethod
    async def destroy(self, entity: EntityType, entity_id: Any) -> bool:
        ...

    @abstractmethod
    async def destroy_where(self, entity: EntityType, criteria: Sequence[Criterion]) -> int:
        ...

    @abstractmethod
    def transaction(self) -> AsyncContextManager[None]:
        """All writes inside the block commit or roll back together."""
