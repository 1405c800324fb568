"""
Resource & Task Cost Routes

GET    /api/tasks/{task_id}/total-cost        — full task cost rollup
DELETE /api/tasks/{task_id}                   — delete task and all child rows
GET    /api/labor/task/{task_id}/summary      — labor cost summary for a task
POST   /api/labor                             — create labor row (total_cost derived)
PUT    /api/labor/{labor_id}                  — update labor row (total_cost re-derived)
PATCH  /api/materials/{material_id}/usage     — record quantity used
POST   /api/equipment/{equipment_id}/assign   — assign to a task
POST   /api/equipment/{equipment_id}/release  — release from its task
PATCH  /api/equipment/{equipment_id}/days     — record rental days used
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from sitecost.api.deps import get_current_admin, get_store
from sitecost.api.responses import ok
from sitecost.models.schemas import (
    EquipmentAssign, EquipmentDaysUpdate, LaborCreate, LaborUpdate, MaterialUsageUpdate,
)
from sitecost.services.cost_rollup_engine import CostRollupEngine
from sitecost.services.resource_service import ResourceService
from sitecost.store.base import ResourceStore

router = APIRouter(prefix="/api", tags=["Costs"])
logger = logging.getLogger("sitecost-api.costs")


# ── Tasks ────────────────────────────────────────────────────────────────────

@router.get("/tasks/{task_id}/total-cost")
async def task_total_cost(
    task_id: str,
    store: ResourceStore = Depends(get_store),
    admin: Dict[str, Any] = Depends(get_current_admin),
):
    return ok(await CostRollupEngine(store).compute_task_cost(task_id))


@router.delete("/tasks/{task_id}")
async def delete_task(
    task_id: str,
    store: ResourceStore = Depends(get_store),
    admin: Dict[str, Any] = Depends(get_current_admin),
):
    removed = await ResourceService(store).delete_task_cascade(task_id)
    return ok(removed, "Task and all associated records deleted successfully")


# ── Labor ────────────────────────────────────────────────────────────────────

@router.get("/labor/task/{task_id}/summary")
async def labor_cost_summary(
    task_id: str,
    store: ResourceStore = Depends(get_store),
    admin: Dict[str, Any] = Depends(get_current_admin),
):
    return ok(await CostRollupEngine(store).compute_labor_cost_summary(task_id))


@router.post("/labor", status_code=201)
async def create_labor(
    payload: LaborCreate,
    store: ResourceStore = Depends(get_store),
    admin: Dict[str, Any] = Depends(get_current_admin),
):
    return ok(await ResourceService(store).create_labor(payload), "Labor record created successfully")


@router.put("/labor/{labor_id}")
async def update_labor(
    labor_id: str,
    payload: LaborUpdate,
    store: ResourceStore = Depends(get_store),
    admin: Dict[str, Any] = Depends(get_current_admin),
):
    return ok(await ResourceService(store).update_labor(labor_id, payload), "Labor record updated successfully")


# ── Materials & Equipment ────────────────────────────────────────────────────

@router.patch("/materials/{material_id}/usage")
async def update_material_usage(
    material_id: str,
    payload: MaterialUsageUpdate,
    store: ResourceStore = Depends(get_store),
    admin: Dict[str, Any] = Depends(get_current_admin),
):
    row = await ResourceService(store).update_material_usage(material_id, payload)
    return ok({"quantity_used": row.get("quantity_used")}, "Material usage updated successfully")


@router.post("/equipment/{equipment_id}/assign")
async def assign_equipment(
    equipment_id: str,
    payload: EquipmentAssign,
    store: ResourceStore = Depends(get_store),
    admin: Dict[str, Any] = Depends(get_current_admin),
):
    row = await ResourceService(store).assign_equipment(equipment_id, payload)
    return ok(row, "Equipment assigned to task successfully")


@router.post("/equipment/{equipment_id}/release")
async def release_equipment(
    equipment_id: str,
    store: ResourceStore = Depends(get_store),
    admin: Dict[str, Any] = Depends(get_current_admin),
):
    row = await ResourceService(store).release_equipment(equipment_id)
    return ok(row, "Equipment released from task successfully")


@router.patch("/equipment/{equipment_id}/days")
async def record_equipment_days(
    equipment_id: str,
    payload: EquipmentDaysUpdate,
    store: ResourceStore = Depends(get_store),
    admin: Dict[str, Any] = Depends(get_current_admin),
):
    return ok(await ResourceService(store).record_equipment_days(equipment_id, payload))
