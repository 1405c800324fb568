"""
quotation_composer.py — Project quotation summary

Turns a project's tasks and their Budget rows into the structure a client
quotation is rendered from:

    {project, budgetSummary, tasks}

budgetSummary = {totalBudgeted, totalActual, totalVariance,
                 totalVariancePercentage, categoryBreakdown, taskSummaries[]}

Quotation type controls what is shown:
  budgeted → actual figures forced to 0   (an estimate)
  actual   → budgeted figures forced to 0 (a final account)
  both     → both sides with variance
"""

import logging
from typing import Any, Dict, List, Sequence

from sitecost.errors import NotFoundError, ValidationError
from sitecost.models.enums import BudgetType, QuotationType
from sitecost.services import cost_calculator as calc
from sitecost.services.cost_rollup_engine import CostRollupEngine
from sitecost.services.degrade import degrade
from sitecost.store.base import EntityType, ResourceStore, Row, eq, is_in

logger = logging.getLogger("sitecost-quotation")


def parse_quotation_type(value: Any) -> QuotationType:
    if isinstance(value, QuotationType):
        return value
    try:
        return QuotationType(value or QuotationType.BOTH.value)
    except ValueError:
        raise ValidationError(
            f"quotationType must be one of: {', '.join(QuotationType.values())}",
            field="quotationType",
        )


def _percent(actual: float, budgeted: float) -> float:
    if budgeted <= 0:
        return 0
    return calc.round_money((actual - budgeted) / budgeted * 100)


def _shown(budgeted: float, actual: float, quotation_type: QuotationType):
    if quotation_type == QuotationType.BUDGETED:
        return budgeted, 0.0
    if quotation_type == QuotationType.ACTUAL:
        return 0.0, actual
    return budgeted, actual


def calculate_budget_summary(tasks: Sequence[Dict[str, Any]], quotation_type: Any = "both") -> Dict[str, Any]:
    """
    ``tasks`` are dicts with ``id``, ``name`` and ``budgets`` (Budget rows).
    Pure; rounds every figure to cents.
    """
    qtype = parse_quotation_type(quotation_type)
    total_budgeted = 0.0
    total_actual = 0.0
    categories: Dict[str, Dict[str, float]] = {}
    task_summaries: List[Dict[str, Any]] = []

    for task in tasks:
        budgets = task.get("budgets") or []
        task_budgeted = 0.0
        task_actual = 0.0
        for b in budgets:
            amount = calc.to_number(b.get("amount"))
            bucket = categories.setdefault(b.get("category"), {"budgeted": 0.0, "actual": 0.0})
            if b.get("type") == BudgetType.BUDGETED.value:
                task_budgeted += amount
                bucket["budgeted"] += amount
            elif b.get("type") == BudgetType.ACTUAL.value:
                task_actual += amount
                bucket["actual"] += amount

        budgeted, actual = _shown(task_budgeted, task_actual, qtype)
        total_budgeted += budgeted
        total_actual += actual
        task_summaries.append({
            "taskId": task.get("id"),
            "taskName": task.get("name"),
            "budgeted": calc.round_money(budgeted),
            "actual": calc.round_money(actual),
            "variance": calc.round_money(actual - budgeted),
            "variancePercentage": _percent(actual, budgeted),
        })

    category_breakdown = {}
    for name, bucket in categories.items():
        budgeted, actual = _shown(bucket["budgeted"], bucket["actual"], qtype)
        category_breakdown[name] = {
            "budgeted": calc.round_money(budgeted),
            "actual": calc.round_money(actual),
        }

    return {
        "totalBudgeted": calc.round_money(total_budgeted),
        "totalActual": calc.round_money(total_actual),
        "totalVariance": calc.round_money(total_actual - total_budgeted),
        "totalVariancePercentage": _percent(total_actual, total_budgeted),
        "categoryBreakdown": category_breakdown,
        "taskSummaries": task_summaries,
    }


def _resource_display(budget: Row, resources: Dict[str, Dict[Any, Row]]) -> Any:
    material = resources["material"].get(budget.get("material_id"))
    if material:
        return {"name": material.get("name"), "unit": material.get("unit"), "unit_cost": material.get("unit_cost")}
    equipment = resources["equipment"].get(budget.get("equipment_id"))
    if equipment:
        return {
            "name": equipment.get("name"),
            "type": equipment.get("type"),
            "rental_cost_per_day": equipment.get("rental_cost_per_day"),
        }
    labor = resources["labor"].get(budget.get("labor_id"))
    if labor:
        return {
            "worker_name": labor.get("worker_name"),
            "worker_type": labor.get("worker_type"),
            "hourly_rate": labor.get("hourly_rate"),
        }
    return None


class QuotationComposer:

    def __init__(self, store: ResourceStore):
        self.store = store
        self.rollup = CostRollupEngine(store)

    async def compose_quotation(self, project_id: Any, quotation_type: Any = "both") -> Dict[str, Any]:
        qtype = parse_quotation_type(quotation_type)
        project = await self.store.find_by_id(EntityType.PROJECT, project_id)
        if project is None:
            raise NotFoundError("project", project_id)

        engineer = None
        if project.get("engineer_in_charge"):
            admin = await self.store.find_by_id(EntityType.ADMIN, project["engineer_in_charge"])
            if admin:
                engineer = {"name": admin.get("name"), "email": admin.get("email"), "phone": admin.get("phone")}

        tasks = await degrade(
            "quotation tasks",
            lambda: self.store.find_all(EntityType.TASK, [eq("project_id", project_id)], order_by="start_date"),
            list, self.store, logger,
        )
        task_ids = [t["id"] for t in tasks]
        budgets = await degrade(
            "quotation budgets",
            lambda: self.store.find_all(EntityType.BUDGET, [is_in("task_id", task_ids)], order_by="date"),
            list, self.store, logger,
        ) if task_ids else []
        resources = await self.rollup.load_budget_resources(budgets)

        by_task: Dict[Any, List[Row]] = {tid: [] for tid in task_ids}
        for b in budgets:
            by_task.setdefault(b["task_id"], []).append(b)

        task_views = [
            {
                "id": t["id"],
                "name": t.get("name"),
                "description": t.get("description"),
                "status": t.get("status"),
                "progress_percent": t.get("progress_percent"),
                "budgets": [
                    {
                        "id": b["id"],
                        "category": b.get("category"),
                        "amount": calc.round_money(b.get("amount")),
                        "type": b.get("type"),
                        "date": b.get("date"),
                        "resource": _resource_display(b, resources),
                    }
                    for b in by_task[t["id"]]
                ],
            }
            for t in tasks
        ]

        summary = calculate_budget_summary(task_views, qtype)
        logger.info(
            f"Quotation composed ({qtype.value}): {len(task_views)} tasks, "
            f"budgeted={summary['totalBudgeted']:.2f} actual={summary['totalActual']:.2f}",
            extra={"project_id": project_id},
        )
        return {
            "project": {
                "id": project["id"],
                "name": project.get("name"),
                "description": project.get("description"),
                "location_name": project.get("location_name"),
                "client_name": project.get("client_name"),
                "contractor_name": project.get("contractor_name"),
                "start_date": project.get("start_date"),
                "end_date": project.get("end_date"),
                "currency": project.get("currency"),
                "engineer": engineer,
            },
            "quotationType": qtype.value,
            "budgetSummary": summary,
            "tasks": task_views,
        }
