"""
Dashboard Routes

GET /api/admin/dashboard/stats            — wide statistics (startDate, endDate, projectId, engineerId)
GET /api/admin/dashboard/projects-by-date — projects per day/week/month by start date
GET /api/admin/dashboard/tasks-by-date    — tasks per day/week/month by creation date
"""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

from sitecost.api.deps import get_current_admin, get_settings, get_store
from sitecost.api.responses import ok
from sitecost.config import Settings
from sitecost.services.dashboard_aggregator import DashboardAggregator
from sitecost.store.base import ResourceStore

router = APIRouter(prefix="/api/admin/dashboard", tags=["Dashboard"])
logger = logging.getLogger("sitecost-api.dashboard")


@router.get("/stats")
async def dashboard_stats(
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    projectId: Optional[str] = None,
    engineerId: Optional[str] = None,
    store: ResourceStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    admin: Dict[str, Any] = Depends(get_current_admin),
):
    filters = {"startDate": startDate, "endDate": endDate, "projectId": projectId, "engineerId": engineerId}
    return ok(await DashboardAggregator(store, settings).compute(filters))


@router.get("/projects-by-date")
async def projects_by_date(
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    groupBy: str = "day",
    store: ResourceStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    admin: Dict[str, Any] = Depends(get_current_admin),
):
    query = {"start_date": startDate, "end_date": endDate, "group_by": groupBy}
    return ok(await DashboardAggregator(store, settings).projects_by_date(query))


@router.get("/tasks-by-date")
async def tasks_by_date(
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    groupBy: str = "day",
    store: ResourceStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    admin: Dict[str, Any] = Depends(get_current_admin),
):
    query = {"start_date": startDate, "end_date": endDate, "group_by": groupBy}
    return ok(await DashboardAggregator(store, settings).tasks_by_date(query))
