"""
resource_service.py — Writes that feed the cost rollups

  - Labor create/update: total_cost = round(hourly_rate × hours_worked, 2) on every write
  - Material usage: 0 <= quantity_used <= quantity_required
  - Equipment assign/release: assignment and availability flip together
  - Task delete: child rows of all five tables removed with the task in one transaction
"""

import logging
from typing import Any, Dict

from sitecost.errors import NotFoundError, ValidationError
from sitecost.models.schemas import (
    EquipmentAssign, EquipmentDaysUpdate, LaborCreate, LaborUpdate, MaterialUsageUpdate, parse_input,
)
from sitecost.services import cost_calculator as calc
from sitecost.store.base import EntityType, ResourceStore, Row, eq

logger = logging.getLogger("sitecost-resources")

# budgets hold FKs to materials/equipment/labor, so they go first; the task row goes last
TASK_CHILDREN = (
    (EntityType.BUDGET, "task_id"),
    (EntityType.PROGRESS_UPDATE, "task_id"),
    (EntityType.MATERIAL, "task_id"),
    (EntityType.EQUIPMENT, "assigned_task_id"),
    (EntityType.LABOR, "task_id"),
)


def _enum_values(attrs: Dict[str, Any]) -> Dict[str, Any]:
    return {k: (v.value if hasattr(v, "value") else v) for k, v in attrs.items()}


class ResourceService:

    def __init__(self, store: ResourceStore):
        self.store = store

    async def _require(self, entity: EntityType, entity_id: Any) -> Row:
        row = await self.store.find_by_id(entity, entity_id)
        if row is None:
            raise NotFoundError(entity.value, entity_id)
        return row

    # ── Labor ──

    async def create_labor(self, data: Any) -> Row:
        labor: LaborCreate = parse_input(LaborCreate, data)
        await self._require(EntityType.TASK, labor.task_id)
        attrs = _enum_values(labor.model_dump())
        attrs["total_cost"] = calc.labor_total_cost(attrs["hourly_rate"], attrs["hours_worked"])
        row = await self.store.create(EntityType.LABOR, attrs)
        logger.info(
            f"Labor created: {labor.worker_name} total_cost={attrs['total_cost']:.2f}",
            extra={"task_id": labor.task_id},
        )
        return row

    async def update_labor(self, labor_id: Any, data: Any) -> Row:
        """
        Patch a labor row and re-derive ``total_cost``. Null values are
        dropped from the patch, so ``phone`` or the dates cannot be cleared here.
        """
        patch: LaborUpdate = parse_input(LaborUpdate, data)
        existing = await self._require(EntityType.LABOR, labor_id)
        attrs = _enum_values({k: v for k, v in patch.model_dump(exclude_unset=True).items() if v is not None})
        if attrs.get("task_id"):
            await self._require(EntityType.TASK, attrs["task_id"])
        # recomputed from the merged row, whichever factor changed
        attrs["total_cost"] = calc.labor_total_cost(
            attrs.get("hourly_rate", existing.get("hourly_rate")),
            attrs.get("hours_worked", existing.get("hours_worked")),
        )
        return await self.store.update(EntityType.LABOR, labor_id, attrs)

    # ── Materials ──

    async def update_material_usage(self, material_id: Any, data: Any) -> Row:
        usage: MaterialUsageUpdate = parse_input(MaterialUsageUpdate, data)
        material = await self._require(EntityType.MATERIAL, material_id)
        if usage.quantity_used < 0:
            raise ValidationError("Quantity used cannot be negative", field="quantity_used")
        if usage.quantity_used > calc.to_number(material.get("quantity_required")):
            raise ValidationError("Quantity used cannot exceed quantity required", field="quantity_used")
        return await self.store.update(EntityType.MATERIAL, material_id, {"quantity_used": usage.quantity_used})

    # ── Equipment ──

    async def assign_equipment(self, equipment_id: Any, data: Any) -> Row:
        assign: EquipmentAssign = parse_input(EquipmentAssign, data)
        equipment = await self._require(EntityType.EQUIPMENT, equipment_id)
        if not equipment.get("availability"):
            raise ValidationError("Equipment is not available", field="availability")
        await self._require(EntityType.TASK, assign.task_id)
        row = await self.store.update(
            EntityType.EQUIPMENT, equipment_id, {"assigned_task_id": assign.task_id, "availability": False}
        )
        logger.info(f"Equipment {equipment_id} assigned", extra={"task_id": assign.task_id})
        return row

    async def release_equipment(self, equipment_id: Any) -> Row:
        await self._require(EntityType.EQUIPMENT, equipment_id)
        return await self.store.update(
            EntityType.EQUIPMENT, equipment_id, {"assigned_task_id": None, "availability": True}
        )

    async def record_equipment_days(self, equipment_id: Any, data: Any) -> Row:
        days: EquipmentDaysUpdate = parse_input(EquipmentDaysUpdate, data)
        await self._require(EntityType.EQUIPMENT, equipment_id)
        if days.days_used < 0:
            raise ValidationError("Days used cannot be negative", field="days_used")
        return await self.store.update(EntityType.EQUIPMENT, equipment_id, {"days_used": days.days_used})

    # ── Tasks ──

    async def delete_task_cascade(self, task_id: Any) -> Dict[str, int]:
        """Remove a task and every row hanging off it; all or nothing."""
        await self._require(EntityType.TASK, task_id)
        removed: Dict[str, int] = {}
        async with self.store.transaction():
            for entity, column in TASK_CHILDREN:
                removed[entity.value] = await self.store.destroy_where(entity, [eq(column, task_id)])
            await self.store.destroy(EntityType.TASK, task_id)
        removed[EntityType.TASK.value] = 1
        logger.info(f"Task deleted with children: {removed}", extra={"task_id": task_id})
        return removed
