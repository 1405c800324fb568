"""
budget_entry_factory.py — Budget row creation and maintenance

Two kinds of entry:
  - manual:          amount typed by the user, stored as-is
  - resource_based:  amount derived from one Material / Equipment / Labor row

    material   →  unit_cost            × quantity
    equipment  →  rental_cost_per_day  × quantity   (quantity = days)
    labor      →  hourly_rate × hours_worked × quantity   (quantity = workers)

The derived amount is written to both ``amount`` and ``calculated_amount`` at
creation time and is a snapshot: editing the resource later does NOT touch
existing Budget rows.
"""

import logging
import math
from datetime import date
from typing import Any, Dict, List, Optional

from sitecost.errors import NotFoundError, ValidationError
from sitecost.models.enums import BudgetEntryType
from sitecost.models.schemas import (
    BudgetEntryCreate, BudgetEntryUpdate, BudgetListFilters, parse_input,
)
from sitecost.services import cost_calculator as calc
from sitecost.store.base import EntityType, ResourceStore, eq, is_in

logger = logging.getLogger("sitecost-budgets")

_RESOURCE_ENTITIES = {
    "material": EntityType.MATERIAL,
    "equipment": EntityType.EQUIPMENT,
    "labor": EntityType.LABOR,
}


def price_resource(kind: str, resource: Dict[str, Any], quantity: float) -> Dict[str, Any]:
    """
    Cost one resource row for a budget entry.

    Returns ``{"amount": float, "details": {...}}`` where details records the
    rate that was captured, for display next to the created entry.
    """
    if kind == "material":
        amount = calc.material_cost(resource.get("unit_cost"), quantity)
        details = {
            "resource_type": "material",
            "resource_name": resource.get("name"),
            "unit_cost": calc.to_number(resource.get("unit_cost")),
            "quantity": quantity,
        }
    elif kind == "equipment":
        amount = calc.equipment_cost(resource.get("rental_cost_per_day"), quantity)
        details = {
            "resource_type": "equipment",
            "resource_name": resource.get("name"),
            "daily_rate": calc.to_number(resource.get("rental_cost_per_day")),
            "days": quantity,
        }
    elif kind == "labor":
        # uses the hours already recorded on the labor row, not a new hours input
        hours = calc.to_number(resource.get("hours_worked"))
        amount = calc.labor_cost(resource.get("hourly_rate"), hours, quantity)
        details = {
            "resource_type": "labor",
            "resource_name": resource.get("worker_name"),
            "hourly_rate": calc.to_number(resource.get("hourly_rate")),
            "hours": hours,
            "quantity": quantity,
        }
    else:
        raise ValidationError(f"Unknown resource type: {kind}", field="entry_type")
    return {"amount": calc.round_money(amount), "details": details}


class BudgetEntryFactory:
    """Creates, lists, updates and deletes Budget rows through a ResourceStore."""

    def __init__(self, store: ResourceStore):
        self.store = store

    async def create_budget_entry(self, data: Any) -> Dict[str, Any]:
        entry: BudgetEntryCreate = parse_input(BudgetEntryCreate, data)

        task = await self.store.find_by_id(EntityType.TASK, entry.task_id)
        if task is None:
            raise NotFoundError("task", entry.task_id)

        ref = entry.resource_ref()
        resource_details: Dict[str, Any] = {}

        if entry.entry_type == BudgetEntryType.RESOURCE_BASED:
            if ref is None:
                raise ValidationError(
                    "resource_based entries need one of material_id, equipment_id, labor_id",
                    field="entry_type",
                )
            resource = await self.store.find_by_id(_RESOURCE_ENTITIES[ref["kind"]], ref["id"])
            if resource is None:
                raise NotFoundError(ref["kind"], ref["id"])
            priced = price_resource(ref["kind"], resource, entry.quantity)
            amount = priced["amount"]
            resource_details = priced["details"]
        else:
            if entry.amount is None:
                raise ValidationError("amount is required for manual entries", field="amount")
            amount = calc.round_money(entry.amount)

        row = await self.store.create(EntityType.BUDGET, {
            "task_id": entry.task_id,
            "category": entry.category,
            "amount": amount,
            "type": entry.type.value,
            "date": entry.date or date.today(),
            "entry_type": entry.entry_type.value,
            "material_id": entry.material_id,
            "equipment_id": entry.equipment_id,
            "labor_id": entry.labor_id,
            "calculated_amount": amount,
            "quantity": entry.quantity,
        })
        logger.info(
            f"Budget entry created: {entry.entry_type.value} {entry.type.value} "
            f"{entry.category} = {amount:.2f}",
            extra={"task_id": entry.task_id},
        )
        return {**row, "resource_details": resource_details}

    async def list_budget_entries(self, filters: Any = None) -> Dict[str, Any]:
        """Filtered, paginated listing, newest date first."""
        flt: BudgetListFilters = parse_input(BudgetListFilters, filters or {})
        criteria = []
        if flt.task_id:
            criteria.append(eq("task_id", flt.task_id))
        if flt.project_id:
            tasks = await self.store.find_all(EntityType.TASK, [eq("project_id", flt.project_id)])
            criteria.append(is_in("task_id", [t["id"] for t in tasks]))
        if flt.type:
            criteria.append(eq("type", flt.type.value))
        if flt.category:
            criteria.append(eq("category", flt.category))

        total = await self.store.count(EntityType.BUDGET, criteria)
        rows = await self.store.find_all(
            EntityType.BUDGET,
            criteria,
            order_by="date",
            descending=True,
            limit=flt.limit,
            offset=(flt.page - 1) * flt.limit,
        )
        await self._attach_tasks(rows)
        return {
            "data": rows,
            "count": total,
            "page": flt.page,
            "limit": flt.limit,
            "totalPages": math.ceil(total / flt.limit),
        }

    async def update_budget_entry(self, budget_id: str, data: Any) -> Dict[str, Any]:
        """
        Patch display fields of an entry. ``amount`` changes only when given
        explicitly; a resource-based snapshot is never re-derived here.

        Explicit nulls are ignored like missing keys, so an optional field
        such as ``date`` cannot be cleared through a patch.
        """
        patch: BudgetEntryUpdate = parse_input(BudgetEntryUpdate, data)
        existing = await self.store.find_by_id(EntityType.BUDGET, budget_id)
        if existing is None:
            raise NotFoundError("budget", budget_id)

        attrs = patch.model_dump(exclude_unset=True)
        if attrs.get("task_id"):
            if await self.store.find_by_id(EntityType.TASK, attrs["task_id"]) is None:
                raise NotFoundError("task", attrs["task_id"])
        if attrs.get("type") is not None:
            attrs["type"] = attrs["type"].value
        if attrs.get("amount") is not None:
            attrs["amount"] = calc.round_money(attrs["amount"])
        attrs = {k: v for k, v in attrs.items() if v is not None}

        if not attrs:
            return existing
        return await self.store.update(EntityType.BUDGET, budget_id, attrs)

    async def delete_budget_entry(self, budget_id: str) -> None:
        if not await self.store.destroy(EntityType.BUDGET, budget_id):
            raise NotFoundError("budget", budget_id)
        logger.info(f"Budget entry {budget_id} deleted")

    async def _attach_tasks(self, rows: List[Dict[str, Any]]) -> None:
        task_ids = {r["task_id"] for r in rows if r.get("task_id")}
        if not task_ids:
            return
        tasks = await self.store.find_all(EntityType.TASK, [is_in("id", task_ids)])
        by_id: Dict[str, Optional[Dict[str, Any]]] = {
            t["id"]: {
                "id": t["id"],
                "name": t.get("name"),
                "status": t.get("status"),
                "progress_percent": t.get("progress_percent"),
                "project_id": t.get("project_id"),
            }
            for t in tasks
        }
        for row in rows:
            row["task"] = by_id.get(row.get("task_id"))
