"""
Budget Routes

GET    /api/budgets                              — filtered, paginated listing
POST   /api/budgets                              — create manual or resource-based entry
PUT    /api/budgets/{budget_id}                  — patch an entry (amount never re-derived)
DELETE /api/budgets/{budget_id}
GET    /api/budgets/project/{project_id}/summary — budgeted vs actual for a project
GET    /api/budgets/task/{task_id}/total         — totals by category and type for a task
GET    /api/budgets/task/{task_id}/resources     — resources a task's entries can derive from
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

from sitecost.api.deps import get_current_admin, get_store
from sitecost.api.responses import ok
from sitecost.models.schemas import BudgetEntryCreate, BudgetEntryUpdate
from sitecost.services.budget_entry_factory import BudgetEntryFactory
from sitecost.services.cost_rollup_engine import CostRollupEngine
from sitecost.store.base import ResourceStore

router = APIRouter(prefix="/api/budgets", tags=["Budgets"])
logger = logging.getLogger("sitecost-api.budgets")


@router.get("")
async def list_budgets(
    task_id: Optional[str] = None,
    project_id: Optional[str] = None,
    type: Optional[str] = None,
    category: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
    store: ResourceStore = Depends(get_store),
    admin: Dict[str, Any] = Depends(get_current_admin),
):
    filters = {
        "task_id": task_id, "project_id": project_id, "type": type,
        "category": category, "page": page, "limit": limit,
    }
    result = await BudgetEntryFactory(store).list_budget_entries(filters)
    return ok(**result)


@router.post("", status_code=201)
async def create_budget(
    payload: BudgetEntryCreate,
    store: ResourceStore = Depends(get_store),
    admin: Dict[str, Any] = Depends(get_current_admin),
):
    entry = await BudgetEntryFactory(store).create_budget_entry(payload)
    return ok(entry, "Budget created successfully")


@router.put("/{budget_id}")
async def update_budget(
    budget_id: str,
    payload: BudgetEntryUpdate,
    store: ResourceStore = Depends(get_store),
    admin: Dict[str, Any] = Depends(get_current_admin),
):
    entry = await BudgetEntryFactory(store).update_budget_entry(budget_id, payload)
    return ok(entry, "Budget updated successfully")


@router.delete("/{budget_id}")
async def delete_budget(
    budget_id: str,
    store: ResourceStore = Depends(get_store),
    admin: Dict[str, Any] = Depends(get_current_admin),
):
    await BudgetEntryFactory(store).delete_budget_entry(budget_id)
    return ok(message="Budget deleted successfully")


@router.get("/project/{project_id}/summary")
async def project_budget_summary(
    project_id: str,
    store: ResourceStore = Depends(get_store),
    admin: Dict[str, Any] = Depends(get_current_admin),
):
    return ok(await CostRollupEngine(store).compute_project_budget_summary(project_id))


@router.get("/task/{task_id}/total")
async def task_budget_total(
    task_id: str,
    store: ResourceStore = Depends(get_store),
    admin: Dict[str, Any] = Depends(get_current_admin),
):
    return ok(await CostRollupEngine(store).compute_task_budget_totals(task_id))


@router.get("/task/{task_id}/resources")
async def task_available_resources(
    task_id: str,
    store: ResourceStore = Depends(get_store),
    admin: Dict[str, Any] = Depends(get_current_admin),
):
    return ok(await CostRollupEngine(store).list_available_resources(task_id))
