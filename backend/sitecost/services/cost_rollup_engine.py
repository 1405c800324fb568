"""
cost_rollup_engine.py — Budgeted vs actual rollups at task, project and portfolio level

Rollups are computed on read from the source rows and never stored.

Task level (per task):
  material_cost      = Σ quantity_used × unit_cost
  equipment_cost     = Σ rental_cost_per_day × days_used      (equipment assigned to the task)
  actual_labor       = Σ total_cost                            (is_requirement = false)
  required_labor     = Σ required_quantity × hours × rate     (is_requirement = true)
  budgeted / actual  = Σ Budget.amount by type

  estimated_total = material + equipment + required_labor + budgeted
  actual_total    = material + equipment + actual_labor   + actual
  variance        = actual_total − estimated_total

Materials and equipment only trust one quantity column each, so they count
the same on both sides. Only labor and Budget rows carry a budgeted/actual split.

Project level sums Budget rows of the project's tasks only; it does not
re-derive material/equipment/labor costs.

Each loader checks its task or project exists first (NotFound). After that a
failing sub-query is logged as degraded and counts as no rows.
"""

import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sitecost.errors import NotFoundError
from sitecost.models.enums import BudgetType, IssueStatus, TaskStatus
from sitecost.services import cost_calculator as calc
from sitecost.services.degrade import degrade
from sitecost.store.base import Criterion, EntityType, ResourceStore, Row, eq, is_in

logger = logging.getLogger("sitecost-rollup")

BUDGETED = BudgetType.BUDGETED.value
ACTUAL = BudgetType.ACTUAL.value


# ── Pure rollups over rows ───────────────────────────────────────────────────

def _sum_budget(budgets: Iterable[Row], budget_type: str) -> float:
    return sum(calc.to_number(b.get("amount")) for b in budgets if b.get("type") == budget_type)


def rollup_task_costs(
    task_id: Any,
    materials: Sequence[Row],
    equipment: Sequence[Row],
    labor: Sequence[Row],
    budgets: Sequence[Row],
) -> Dict[str, Any]:
    """Combine one task's resources and Budget rows into a TaskCostSummary dict."""
    material_cost = sum(
        calc.material_cost(m.get("unit_cost"), m.get("quantity_used")) for m in materials
    )
    equipment_cost = sum(
        calc.equipment_cost(e.get("rental_cost_per_day"), e.get("days_used")) for e in equipment
    )

    workers = [w for w in labor if not w.get("is_requirement")]
    requirements = [w for w in labor if w.get("is_requirement")]
    actual_labor = sum(calc.to_number(w.get("total_cost")) for w in workers)
    required_labor = sum(
        calc.labor_cost(
            r.get("hourly_rate"), r.get("hours_worked"), calc.requirement_quantity(r.get("required_quantity"))
        )
        for r in requirements
    )
    required_workers = sum(calc.requirement_quantity(r.get("required_quantity")) for r in requirements)

    budgeted = _sum_budget(budgets, BUDGETED)
    actual = _sum_budget(budgets, ACTUAL)

    estimated_total = material_cost + equipment_cost + required_labor + budgeted
    actual_total = material_cost + equipment_cost + actual_labor + actual

    return {
        "task_id": task_id,
        "materials": {"cost": calc.round_money(material_cost), "count": len(materials)},
        "equipment": {"cost": calc.round_money(equipment_cost), "count": len(equipment)},
        "labor": {
            "actual_cost": calc.round_money(actual_labor),
            "required_cost": calc.round_money(required_labor),
            "actual_workers": len(workers),
            "required_workers": int(required_workers),
        },
        "budget": {
            "budgeted": calc.round_money(budgeted),
            "actual": calc.round_money(actual),
            "variance": calc.round_money(actual - budgeted),
        },
        "total": {
            "estimated": calc.round_money(estimated_total),
            "actual": calc.round_money(actual_total),
            "variance": calc.round_money(actual_total - estimated_total),
        },
    }


def summarize_budget_entries(budgets: Sequence[Row]) -> Dict[str, Any]:
    """Totals, variance and per-category split of a flat list of Budget rows."""
    budgeted = _sum_budget(budgets, BUDGETED)
    actual = _sum_budget(budgets, ACTUAL)

    categories: Dict[str, Dict[str, float]] = {}
    for b in budgets:
        bucket = categories.setdefault(b.get("category"), {"budgeted": 0.0, "actual": 0.0})
        if b.get("type") == BUDGETED:
            bucket["budgeted"] += calc.to_number(b.get("amount"))
        elif b.get("type") == ACTUAL:
            bucket["actual"] += calc.to_number(b.get("amount"))

    return {
        "total_budgeted": calc.round_money(budgeted),
        "total_actual": calc.round_money(actual),
        "variance": calc.round_money(actual - budgeted),
        "variance_percentage": calc.variance_percentage(actual, budgeted),
        "category_breakdown": {
            name: {k: calc.round_money(v) for k, v in bucket.items()}
            for name, bucket in categories.items()
        },
        "total_entries": len(budgets),
    }


def merge_project_resource_counts(
    projects: Sequence[Row],
    material_counts: Dict[Any, int],
    labor_counts: Dict[Any, int],
    equipment_counts: Dict[Any, int],
) -> List[Dict[str, Any]]:
    """Left join per-project resource counts onto the project list; missing counts are 0."""
    summary = []
    for project in projects:
        pid = project["id"]
        materials = int(material_counts.get(pid, 0))
        labor = int(labor_counts.get(pid, 0))
        equipment = int(equipment_counts.get(pid, 0))
        summary.append({
            "project_id": pid,
            "project_name": project.get("name"),
            "status": project.get("status"),
            "progress_percent": project.get("progress_percent"),
            "materialCount": materials,
            "laborCount": labor,
            "equipmentCount": equipment,
            "totalResources": materials + labor + equipment,
        })
    return summary


def _describe_resource(budget: Row, resources: Dict[str, Dict[Any, Row]]) -> Optional[Dict[str, Any]]:
    material = resources["material"].get(budget.get("material_id"))
    if material:
        return {"type": "material", "name": material.get("name"), "unit": material.get("unit")}
    equipment = resources["equipment"].get(budget.get("equipment_id"))
    if equipment:
        return {"type": "equipment", "name": equipment.get("name"), "equipment_type": equipment.get("type")}
    labor = resources["labor"].get(budget.get("labor_id"))
    if labor:
        return {"type": "labor", "name": labor.get("worker_name"), "worker_type": labor.get("worker_type")}
    return None


# ── Store-backed rollups ─────────────────────────────────────────────────────

class CostRollupEngine:
    """Loads rows from a ResourceStore and runs the rollups above."""

    def __init__(self, store: ResourceStore):
        self.store = store

    async def _require(self, entity: EntityType, entity_id: Any) -> Row:
        row = await self.store.find_by_id(entity, entity_id)
        if row is None:
            raise NotFoundError(entity.value, entity_id)
        return row

    async def _find_or_empty(self, label: str, entity: EntityType, criteria: Sequence[Criterion]) -> List[Row]:
        return await degrade(label, lambda: self.store.find_all(entity, criteria), list, self.store, logger)

    async def _budgets_of(self, task_ids: Sequence[Any]) -> List[Row]:
        if not task_ids:
            return []
        return await self._find_or_empty("budgets", EntityType.BUDGET, [is_in("task_id", task_ids)])

    async def _task_ids(self, project_id: Any) -> List[Any]:
        tasks = await self._find_or_empty("tasks", EntityType.TASK, [eq("project_id", project_id)])
        return [t["id"] for t in tasks]

    async def load_budget_resources(self, budgets: Sequence[Row]) -> Dict[str, Dict[Any, Row]]:
        """Fetch the Material/Equipment/Labor rows referenced by ``budgets``, keyed by id."""
        loaded: Dict[str, Dict[Any, Row]] = {}
        for kind, entity in (
            ("material", EntityType.MATERIAL),
            ("equipment", EntityType.EQUIPMENT),
            ("labor", EntityType.LABOR),
        ):
            ids = {b[f"{kind}_id"] for b in budgets if b.get(f"{kind}_id")}
            rows = await self._find_or_empty(f"{kind} for budget entries", entity, [is_in("id", ids)]) if ids else []
            loaded[kind] = {r["id"]: r for r in rows}
        return loaded

    # ── Task ──

    async def compute_task_cost(self, task_id: Any) -> Dict[str, Any]:
        await self._require(EntityType.TASK, task_id)
        materials = await self._find_or_empty("materials", EntityType.MATERIAL, [eq("task_id", task_id)])
        equipment = await self._find_or_empty("equipment", EntityType.EQUIPMENT, [eq("assigned_task_id", task_id)])
        labor = await self._find_or_empty("labor", EntityType.LABOR, [eq("task_id", task_id)])
        budgets = await self._budgets_of([task_id])
        return rollup_task_costs(task_id, materials, equipment, labor, budgets)

    async def compute_task_budget_totals(self, task_id: Any) -> Dict[str, Any]:
        task = await self._require(EntityType.TASK, task_id)
        budgets = await self._budgets_of([task_id])
        resources = await self.load_budget_resources(budgets)

        total_budgeted = 0.0
        total_actual = 0.0
        by_category: Dict[str, Dict[str, float]] = {}
        by_type: Dict[str, float] = defaultdict(float)
        entries = []
        for b in budgets:
            amount = calc.to_number(b.get("amount"))
            bucket = by_category.setdefault(b.get("category"), {"budgeted": 0.0, "actual": 0.0, "total": 0.0})
            bucket["total"] += amount
            if b.get("type") == BUDGETED:
                total_budgeted += amount
                bucket["budgeted"] += amount
            else:
                total_actual += amount
                bucket["actual"] += amount
            by_type[b.get("type")] += amount
            entries.append({
                "id": b.get("id"),
                "category": b.get("category"),
                "amount": calc.round_money(amount),
                "type": b.get("type"),
                "entry_type": b.get("entry_type"),
                "date": b.get("date"),
                "resource": _describe_resource(b, resources),
            })

        return {
            "task_id": task_id,
            "task_name": task.get("name"),
            "total_budgeted": calc.round_money(total_budgeted),
            "total_actual": calc.round_money(total_actual),
            "total_overall": calc.round_money(total_budgeted + total_actual),
            "by_category": {
                name: {k: calc.round_money(v) for k, v in bucket.items()}
                for name, bucket in by_category.items()
            },
            "by_type": {k: calc.round_money(v) for k, v in by_type.items()},
            "budget_entries": entries,
        }

    async def compute_labor_cost_summary(self, task_id: Any) -> Dict[str, Any]:
        await self._require(EntityType.TASK, task_id)
        labor = await self._find_or_empty("labor", EntityType.LABOR, [eq("task_id", task_id)])

        total_cost = sum(calc.to_number(w.get("total_cost")) for w in labor)
        total_hours = sum(calc.to_number(w.get("hours_worked")) for w in labor)
        breakdown: Dict[str, Dict[str, Any]] = {}
        for w in labor:
            bucket = breakdown.setdefault(w.get("worker_type"), {"count": 0, "total_cost": 0.0, "total_hours": 0.0})
            bucket["count"] += 1
            bucket["total_cost"] += calc.to_number(w.get("total_cost"))
            bucket["total_hours"] += calc.to_number(w.get("hours_worked"))

        return {
            "task_id": task_id,
            "total_workers": len(labor),
            "total_cost": calc.round_money(total_cost),
            "total_hours": calc.round_money(total_hours),
            "average_hourly_rate": calc.round_money(total_cost / total_hours) if total_hours > 0 else 0,
            "type_breakdown": {
                kind: {
                    "count": b["count"],
                    "total_cost": calc.round_money(b["total_cost"]),
                    "total_hours": calc.round_money(b["total_hours"]),
                }
                for kind, b in breakdown.items()
            },
        }

    async def list_available_resources(self, task_id: Any) -> Dict[str, Any]:
        """Resources a budget entry for this task could be derived from, with estimates."""
        await self._require(EntityType.TASK, task_id)
        materials = await self._find_or_empty("materials", EntityType.MATERIAL, [eq("task_id", task_id)])
        equipment = await self._find_or_empty("equipment", EntityType.EQUIPMENT, [eq("assigned_task_id", task_id)])
        labor = await self._find_or_empty("labor", EntityType.LABOR, [eq("task_id", task_id)])

        def labor_estimate(w: Row) -> float:
            quantity = calc.requirement_quantity(w.get("required_quantity")) if w.get("is_requirement") else 1
            return calc.round_money(calc.labor_cost(w.get("hourly_rate"), w.get("hours_worked"), quantity))

        return {
            "task_id": task_id,
            "materials": [
                {
                    "id": m["id"],
                    "name": m.get("name"),
                    "unit": m.get("unit"),
                    "unit_cost": calc.to_number(m.get("unit_cost")),
                    "quantity_required": calc.to_number(m.get("quantity_required")),
                    "estimated_cost": calc.round_money(
                        calc.material_cost(m.get("unit_cost"), calc.requirement_quantity(m.get("quantity_required")))
                    ),
                }
                for m in materials
            ],
            "equipment": [
                {
                    "id": e["id"],
                    "name": e.get("name"),
                    "type": e.get("type"),
                    "daily_rate": calc.to_number(e.get("rental_cost_per_day")),
                    "availability": e.get("availability"),
                }
                for e in equipment
            ],
            "labor": [
                {
                    "id": w["id"],
                    "worker_name": w.get("worker_name"),
                    "worker_type": w.get("worker_type"),
                    "hourly_rate": calc.to_number(w.get("hourly_rate")),
                    "hours_worked": calc.to_number(w.get("hours_worked")),
                    "is_requirement": bool(w.get("is_requirement")),
                    "required_quantity": w.get("required_quantity"),
                    "estimated_cost": labor_estimate(w),
                }
                for w in labor
            ],
        }

    # ── Project ──

    async def compute_project_budget_summary(self, project_id: Any) -> Dict[str, Any]:
        await self._require(EntityType.PROJECT, project_id)
        task_ids = await self._task_ids(project_id)
        budgets = await self._budgets_of(task_ids)
        return {"project_id": project_id, **summarize_budget_entries(budgets)}

    async def compute_project_stats(self, project_id: Any) -> Dict[str, Any]:
        project = await self._require(EntityType.PROJECT, project_id)
        tasks = await self._find_or_empty("tasks", EntityType.TASK, [eq("project_id", project_id)])
        task_ids = [t["id"] for t in tasks]
        budgets = await self._budgets_of(task_ids)
        issues = await self._find_or_empty("issues", EntityType.ISSUE, [eq("project_id", project_id)])

        statuses = defaultdict(int)
        for t in tasks:
            statuses[t.get("status")] += 1
        completed = statuses[TaskStatus.COMPLETED.value]
        budgeted = _sum_budget(budgets, BUDGETED)
        actual = _sum_budget(budgets, ACTUAL)

        return {
            "project": {
                "id": project["id"],
                "name": project.get("name"),
                "status": project.get("status"),
                "progress_percent": project.get("progress_percent"),
            },
            "tasks": {
                "total": len(tasks),
                "completed": completed,
                "in_progress": statuses[TaskStatus.IN_PROGRESS.value],
                "pending": statuses[TaskStatus.PENDING.value],
                "completion_rate": calc.round_half_up(completed / len(tasks) * 100) if tasks else 0,
            },
            "budget": {
                # the PM's headline figure, reported as stored
                "estimated": project.get("budget_estimate"),
                "budgeted": calc.round_money(budgeted),
                "actual": calc.round_money(actual),
                "variance": calc.round_money(actual - budgeted),
            },
            "issues": {
                "total": len(issues),
                "open": sum(1 for i in issues if i.get("status") == IssueStatus.OPEN.value),
                "resolved": sum(1 for i in issues if i.get("status") == IssueStatus.RESOLVED.value),
            },
        }

    async def compute_project_resource_counts(self, criteria: Sequence[Criterion] = ()) -> List[Dict[str, Any]]:
        """Material / labor / equipment counts for every project matching ``criteria``."""
        projects = await self.store.find_all(EntityType.PROJECT, criteria)
        if not projects:
            return []
        tasks = await self._find_or_empty(
            "tasks per project", EntityType.TASK, [is_in("project_id", [p["id"] for p in projects])]
        )
        project_of = {t["id"]: t["project_id"] for t in tasks}
        task_ids = list(project_of)

        async def per_project(entity: EntityType, task_column: str) -> Dict[Any, int]:
            if not task_ids:
                return {}
            rows = await self.store.aggregate(
                entity, [task_column], "count", criteria=[is_in(task_column, task_ids)]
            )
            counts: Dict[Any, int] = defaultdict(int)
            for row in rows:
                pid = project_of.get(row[task_column])
                if pid is not None:
                    counts[pid] += int(row["value"] or 0)
            return counts

        material_counts = await degrade(
            "materials per project", lambda: per_project(EntityType.MATERIAL, "task_id"), dict, self.store, logger
        )
        labor_counts = await degrade(
            "labor per project", lambda: per_project(EntityType.LABOR, "task_id"), dict, self.store, logger
        )
        equipment_counts = await degrade(
            "equipment per project",
            lambda: per_project(EntityType.EQUIPMENT, "assigned_task_id"),
            dict, self.store, logger,
        )
        return merge_project_resource_counts(projects, material_counts, labor_counts, equipment_counts)

    # ── Portfolio ──

    async def summarize_portfolio_budget(self) -> Dict[str, Any]:
        """Σ amount by type and by (category, type) across every Budget row."""
        by_type = await degrade(
            "budget by type",
            lambda: self.store.aggregate(EntityType.BUDGET, ["type"], "sum", "amount"),
            list, self.store, logger,
        )
        by_category = await degrade(
            "budget by category",
            lambda: self.store.aggregate(EntityType.BUDGET, ["category", "type"], "sum", "amount"),
            list, self.store, logger,
        )
        totals = {row["type"]: calc.to_number(row["value"]) for row in by_type}
        budgeted = totals.get(BUDGETED, 0.0)
        actual = totals.get(ACTUAL, 0.0)
        utilization = calc.money(actual / budgeted * 100) if budgeted > 0 else "0.00"
        return {
            "totalBudgeted": calc.money(budgeted),
            "totalActual": calc.money(actual),
            "variance": calc.money(actual - budgeted),
            "utilizationPercent": utilization,
            "byCategory": [
                {"category": row["category"], "type": row["type"], "totalAmount": calc.money(row["value"])}
                for row in by_category
            ],
        }
