"""
dashboard_aggregator.py — Admin dashboard statistics

One wide read made of ~25 independent sub-queries (counts, enum breakdowns,
cost sums, recent records, top engineers). Each sub-query is wrapped in
``degrade`` so one failure yields a zero/empty section instead of failing the
whole dashboard.

Every status/type breakdown is enum-complete: all known values are reported,
absent ones with count "0", so charts have a fixed shape.
"""

import logging
from collections import OrderedDict
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from sitecost.models.enums import (
    ConstructionType, DateGrouping, DocumentType, EQUIPMENT_AVAILABILITY, IssueStatus,
    LaborStatus, LaborType, ProjectStatus, TaskStatus,
)
from sitecost.models.schemas import DateRangeQuery, parse_input
from sitecost.services import cost_calculator as calc
from sitecost.services.cost_rollup_engine import CostRollupEngine
from sitecost.services.degrade import degrade, timed_async
from sitecost.store.base import (
    Criterion, EntityType, ResourceStore, Row, eq, gte, is_in, lt, lte, ne,
)

logger = logging.getLogger("sitecost-dashboard")

AT_RISK_STATUSES = (ProjectStatus.PLANNING.value, ProjectStatus.IN_PROGRESS.value)
ACTIVE_ADMIN_WINDOW = timedelta(days=7)


class DashboardFilters(BaseModel):
    """Optional dashboard filter set. Query-string names are camelCase."""
    model_config = ConfigDict(populate_by_name=True)

    start_date: Optional[date] = Field(None, alias="startDate")
    end_date: Optional[date] = Field(None, alias="endDate")
    project_id: Optional[str] = Field(None, alias="projectId")
    engineer_id: Optional[str] = Field(None, alias="engineerId")


def _day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def build_project_criteria(filters: Optional[DashboardFilters]) -> List[Criterion]:
    """
    The one place dashboard filters become store criteria. Applies to every
    project-scoped sub-query; the date range bounds project ``created_at``
    and is inclusive of the whole end day.
    """
    if filters is None:
        return []
    criteria: List[Criterion] = []
    if filters.project_id:
        criteria.append(eq("id", filters.project_id))
    if filters.engineer_id:
        criteria.append(eq("engineer_in_charge", filters.engineer_id))
    if filters.start_date:
        criteria.append(gte("created_at", _day_start(filters.start_date)))
    if filters.end_date:
        criteria.append(lt("created_at", _day_start(filters.end_date + timedelta(days=1))))
    return criteria


def fill_enum_counts(rows: Sequence[Row], enum_values: Sequence[Any], key_name: str = "status") -> List[Dict[str, Any]]:
    """
    One ``{key_name: value, "count": str}`` entry per enum value, in enum
    order. ``rows`` are aggregate rows holding ``key_name`` and ``value``.
    """
    found = {}
    for row in rows:
        found[row.get(key_name)] = row.get("count", row.get("value"))
    return [
        {key_name: value, "count": str(int(calc.to_number(found[value]))) if value in found else "0"}
        for value in enum_values
    ]


def _bucket_key(value: Any, group_by: DateGrouping) -> Optional[str]:
    if value is None:
        return None
    day = value.date() if isinstance(value, datetime) else value
    if group_by == DateGrouping.MONTH:
        return f"{day.year:04d}-{day.month:02d}"
    if group_by == DateGrouping.WEEK:
        # week of year counted from Jan 1, as Postgres TO_CHAR 'WW'
        return f"{day.year:04d}-{(day.timetuple().tm_yday - 1) // 7 + 1:02d}"
    return day.isoformat()


def group_by_date(rows: Sequence[Row], date_field: str, group_by: DateGrouping) -> List[Dict[str, Any]]:
    """Chart buckets ``{date, total, byStatus}`` in ascending date order."""
    buckets: Dict[str, Dict[str, Any]] = {}
    for row in rows:
        key = _bucket_key(row.get(date_field), group_by)
        if key is None:
            continue
        bucket = buckets.setdefault(key, {"date": key, "total": 0, "byStatus": {}})
        bucket["total"] += 1
        status = row.get("status")
        bucket["byStatus"][status] = bucket["byStatus"].get(status, 0) + 1
    ordered = OrderedDict(sorted(buckets.items()))
    for bucket in ordered.values():
        bucket["byStatus"] = dict(sorted(bucket["byStatus"].items(), key=lambda kv: str(kv[0])))
    return list(ordered.values())


class DashboardAggregator:

    def __init__(self, store: ResourceStore, settings=None):
        self.store = store
        self.top_n = getattr(settings, "dashboard_top_n", 5)
        self.recent_limit = getattr(settings, "recent_limit", 5)
        self.rollup = CostRollupEngine(store)

    async def _safe(self, label: str, query: Callable[[], Awaitable[Any]], default: Any) -> Any:
        return await degrade(label, query, default, self.store, logger)

    async def _count(self, label: str, entity: EntityType, criteria: Sequence[Criterion] = ()) -> int:
        return await self._safe(label, lambda: self.store.count(entity, criteria), 0)

    async def _breakdown(
        self, label: str, entity: EntityType, column: str, enum_values: Sequence[Any],
        criteria: Sequence[Criterion] = (),
    ) -> List[Dict[str, Any]]:
        rows = await self._safe(
            label, lambda: self.store.aggregate(entity, [column], "count", criteria=criteria), list
        )
        return fill_enum_counts(rows, enum_values, column)

    async def _single(self, label: str, entity: EntityType, func: str, column: str,
                      criteria: Sequence[Criterion] = ()) -> float:
        async def query():
            rows = await self.store.aggregate(entity, [], func, column, criteria)
            return calc.to_number(rows[0]["value"]) if rows else 0.0
        return await self._safe(label, query, 0.0)

    async def _recent(
        self, label: str, entity: EntityType, criteria: Sequence[Criterion], fields: Sequence[str]
    ) -> List[Row]:
        rows = await self._safe(
            label,
            lambda: self.store.find_all(
                entity, criteria, order_by="created_at", descending=True, limit=self.recent_limit
            ),
            list,
        )
        return [{f: r.get(f) for f in fields} for r in rows]

    async def _attach(
        self, label: str, rows: List[Row], fk: str, entity: EntityType, key: str, fields: Sequence[str]
    ) -> List[Row]:
        """Embed the parent row named by ``fk`` under ``key``; unenriched rows on failure."""
        async def query():
            ids = {r[fk] for r in rows if r.get(fk)}
            parents = await self.store.find_all(entity, [is_in("id", ids)]) if ids else []
            by_id = {p["id"]: {f: p.get(f) for f in fields} for p in parents}
            return [{**r, key: by_id.get(r.get(fk))} for r in rows]
        return await self._safe(label, query, lambda: rows)

    # ── Sections ──

    async def top_engineers(self, criteria: Sequence[Criterion]) -> List[Dict[str, Any]]:
        """Admins ranked by project count desc, then name; only those with projects."""
        async def ranked():
            rows = await self.store.aggregate(
                EntityType.PROJECT, ["engineer_in_charge"], "count", criteria=criteria
            )
            counts = {r["engineer_in_charge"]: int(r["value"]) for r in rows if int(r["value"] or 0) > 0}
            if not counts:
                return []
            admins = await self.store.find_all(EntityType.ADMIN, [is_in("id", counts)])
            result = [
                {"id": a["id"], "name": a.get("name"), "email": a.get("email"), "projectCount": counts[a["id"]]}
                for a in admins
            ]
            result.sort(key=lambda e: (-e["projectCount"], e["name"] or ""))
            return result[: self.top_n]

        result = await self._safe("top engineers", ranked, None)
        if result is not None:
            return result
        fallback = await self._safe(
            "top engineers fallback",
            lambda: self.store.find_all(EntityType.ADMIN, limit=self.top_n),
            list,
        )
        return [{"id": a["id"], "name": a.get("name"), "email": a.get("email")} for a in fallback]

    async def material_summary(self) -> Dict[str, Any]:
        materials = await self._safe("material usage", lambda: self.store.find_all(EntityType.MATERIAL), list)
        required = sum(calc.to_number(m.get("quantity_required")) for m in materials)
        used = sum(calc.to_number(m.get("quantity_used")) for m in materials)
        planned_cost = sum(calc.material_cost(m.get("unit_cost"), m.get("quantity_required")) for m in materials)
        spent = sum(calc.material_cost(m.get("unit_cost"), m.get("quantity_used")) for m in materials)
        return {
            "totalRequired": calc.money(required),
            "totalUsed": calc.money(used),
            "utilizationPercent": calc.ratio_percent(used, required),
            "totalCost": calc.money(planned_cost),
            "totalSpent": calc.money(spent),
        }

    async def project_budgets(self, criteria: Sequence[Criterion]) -> List[Dict[str, Any]]:
        projects = await self._safe(
            "project budgets", lambda: self.store.find_all(EntityType.PROJECT, criteria), list
        )
        return [
            {
                "id": p["id"],
                "name": p.get("name"),
                "budget_estimate": calc.money(p.get("budget_estimate")),
                "actual_cost": calc.money(p.get("actual_cost")),
                "budgetRemaining": calc.money(
                    calc.to_number(p.get("budget_estimate")) - calc.to_number(p.get("actual_cost"))
                ),
            }
            for p in projects
        ]

    @timed_async
    async def compute(self, filters: Any = None) -> Dict[str, Any]:
        flt: DashboardFilters = parse_input(DashboardFilters, filters or {})
        pc = build_project_criteria(flt)
        today = date.today()
        now = datetime.now(timezone.utc)

        # ── totals ──
        total_projects = await self._count("total projects", EntityType.PROJECT, pc)
        total_tasks = await self._count("total tasks", EntityType.TASK)
        overview = {
            "totalProjects": total_projects,
            "totalTasks": total_tasks,
            "totalUsers": await self._count("total users", EntityType.USER),
            "totalAdmins": await self._count("total admins", EntityType.ADMIN),
            "totalMaterials": await self._count("total materials", EntityType.MATERIAL),
            "totalEquipment": await self._count("total equipment", EntityType.EQUIPMENT),
            "totalLabor": await self._count("total labor", EntityType.LABOR),
            "totalIssues": await self._count("total issues", EntityType.ISSUE),
            "totalDocuments": await self._count("total documents", EntityType.DOCUMENT),
            "activeAdmins": await self._count(
                "active admins", EntityType.ADMIN, [gte("last_login", now - ACTIVE_ADMIN_WINDOW)]
            ),
            "overdueTasks": await self._count(
                "overdue tasks", EntityType.TASK,
                [lt("due_date", today), ne("status", TaskStatus.COMPLETED.value)],
            ),
        }

        # ── projects ──
        recent_projects = await self._recent(
            "recent projects", EntityType.PROJECT, pc,
            ["id", "name", "status", "created_at", "engineer_in_charge"],
        )
        recent_projects = await self._attach(
            "recent projects engineer", recent_projects, "engineer_in_charge",
            EntityType.ADMIN, "engineer", ["name", "email"],
        )
        projects = {
            "byStatus": await self._breakdown(
                "projects by status", EntityType.PROJECT, "status", ProjectStatus.values(), pc
            ),
            "byType": await self._breakdown(
                "projects by type", EntityType.PROJECT, "construction_type", ConstructionType.values(), pc
            ),
            "progress": {
                "avgProgress": calc.money(
                    await self._single("avg progress", EntityType.PROJECT, "avg", "progress_percent", pc)
                ),
                "minProgress": int(await self._single("min progress", EntityType.PROJECT, "min", "progress_percent", pc)),
                "maxProgress": int(await self._single("max progress", EntityType.PROJECT, "max", "progress_percent", pc)),
            },
            "recent": recent_projects,
            "resources": await self._safe(
                "project resources", lambda: self.rollup.compute_project_resource_counts(pc), list
            ),
        }

        # ── tasks ──
        recent_tasks = await self._recent(
            "recent tasks", EntityType.TASK, [],
            ["id", "name", "status", "progress_percent", "created_at", "project_id"],
        )
        tasks = {
            "byStatus": await self._breakdown("tasks by status", EntityType.TASK, "status", TaskStatus.values()),
            "overdue": overview["overdueTasks"],
            "recent": await self._attach(
                "recent tasks project", recent_tasks, "project_id", EntityType.PROJECT, "project", ["name"]
            ),
        }

        # ── budget ──
        portfolio = await self.rollup.summarize_portfolio_budget()
        budget = {**portfolio, "projectBudgets": await self.project_budgets(pc)}

        # ── issues ──
        recent_issues = await self._recent(
            "recent issues", EntityType.ISSUE, [], ["id", "description", "status", "created_at", "project_id"]
        )
        issues = {
            "byStatus": await self._breakdown("issues by status", EntityType.ISSUE, "status", IssueStatus.values()),
            "recent": await self._attach(
                "recent issues project", recent_issues, "project_id", EntityType.PROJECT, "project", ["name"]
            ),
        }

        # ── resources ──
        equipment = {
            "byAvailability": await self._breakdown(
                "equipment by availability", EntityType.EQUIPMENT, "availability", EQUIPMENT_AVAILABILITY
            ),
        }
        labor = {
            "byStatus": await self._breakdown("labor by status", EntityType.LABOR, "status", LaborStatus.values()),
            "byType": await self._breakdown("labor by type", EntityType.LABOR, "worker_type", LaborType.values()),
            "summary": {
                "totalHours": calc.money(await self._single("labor hours", EntityType.LABOR, "sum", "hours_worked")),
                "totalCost": calc.money(await self._single("labor cost", EntityType.LABOR, "sum", "total_cost")),
                "avgHourlyRate": calc.money(await self._single("labor rate", EntityType.LABOR, "avg", "hourly_rate")),
            },
        }
        available = [eq("availability", True)]
        equipment_summary = {
            "totalDailyRentalCost": calc.money(
                await self._single("equipment rental", EntityType.EQUIPMENT, "sum", "rental_cost_per_day", available)
            ),
            "availableEquipment": await self._count("available equipment", EntityType.EQUIPMENT, available),
        }

        # ── performance ──
        completed = await self._count(
            "completed tasks", EntityType.TASK, [eq("status", TaskStatus.COMPLETED.value)]
        )
        in_progress = await self._count(
            "in-progress tasks", EntityType.TASK, [eq("status", TaskStatus.IN_PROGRESS.value)]
        )
        performance = {
            "taskCompletionRate": calc.ratio_percent(completed, total_tasks),
            "completedTasks": completed,
            "inProgressTasks": in_progress,
            "projectsAtRisk": await self._count(
                "projects at risk", EntityType.PROJECT,
                list(pc) + [lt("end_date", today), is_in("status", AT_RISK_STATUSES)],
            ),
        }

        # ── activity ──
        recent_updates = await self._recent(
            "recent progress updates", EntityType.PROGRESS_UPDATE, [],
            ["id", "description", "progress_percent", "created_at", "task_id"],
        )
        recent_updates = await self._attach(
            "recent progress updates task", recent_updates, "task_id",
            EntityType.TASK, "task", ["id", "name", "status", "project_id"],
        )
        recent_updates = await self._attach_update_projects(recent_updates)

        logger.info(
            f"Dashboard computed: {total_projects} projects, {total_tasks} tasks",
            extra={"project_id": flt.project_id},
        )
        return {
            "overview": overview,
            "projects": projects,
            "tasks": tasks,
            "budget": budget,
            "issues": issues,
            "equipment": equipment,
            "labor": labor,
            "materials": {"summary": await self.material_summary()},
            "equipmentSummary": equipment_summary,
            "performance": performance,
            "recentActivity": {"progressUpdates": recent_updates},
            "documents": {
                "perType": await self._breakdown(
                    "documents by type", EntityType.DOCUMENT, "document_type", DocumentType.values()
                ),
            },
            "engineers": {"top": await self.top_engineers(pc)},
        }

    async def _attach_update_projects(self, updates: List[Row]) -> List[Row]:
        tasks = [u["task"] for u in updates if u.get("task")]
        if not tasks:
            return updates
        enriched = await self._attach(
            "recent progress updates project", tasks, "project_id", EntityType.PROJECT, "project", ["name", "status"]
        )
        by_task = {t["id"]: t for t in enriched}
        return [{**u, "task": by_task.get(u["task"]["id"])} if u.get("task") else u for u in updates]

    # ── Date charts ──

    async def projects_by_date(self, query: Any) -> Dict[str, Any]:
        """Projects bucketed by ``start_date`` for the bar chart."""
        q: DateRangeQuery = parse_input(DateRangeQuery, query)
        rows = await self.store.find_all(
            EntityType.PROJECT, [gte("start_date", q.start_date), lte("start_date", q.end_date)]
        )
        chart = group_by_date(rows, "start_date", q.group_by)
        return self._chart_payload(chart, q, "totalProjects")

    async def tasks_by_date(self, query: Any) -> Dict[str, Any]:
        """Tasks bucketed by creation time for the bar chart."""
        q: DateRangeQuery = parse_input(DateRangeQuery, query)
        rows = await self.store.find_all(
            EntityType.TASK,
            [gte("created_at", _day_start(q.start_date)), lt("created_at", _day_start(q.end_date + timedelta(days=1)))],
        )
        chart = group_by_date(rows, "created_at", q.group_by)
        return self._chart_payload(chart, q, "totalTasks")

    @staticmethod
    def _chart_payload(chart: List[Dict[str, Any]], q: DateRangeQuery, total_key: str) -> Dict[str, Any]:
        return {
            "chartData": chart,
            "summary": {
                total_key: sum(b["total"] for b in chart),
                "dateRange": {"startDate": q.start_date.isoformat(), "endDate": q.end_date.isoformat()},
                "groupBy": q.group_by.value,
            },
        }
