"""
test_cost_rollup_engine.py — Task, project and portfolio rollups.

Tests cover:
  - rollup_task_costs formulas (materials, equipment, labor split, Budget rows)
  - Empty / garbage inputs producing zeros rather than errors
  - Budget summaries with variance and per-category split
  - Resource counts per project (left join, zero defaults, degraded sub-query)
  - Store-backed task / project / portfolio reads and NotFound handling
  - Failed sub-queries after the existence check degrade to empty rows
"""

import logging
from datetime import date

import pytest

from sitecost.errors import NotFoundError
from sitecost.services.cost_rollup_engine import (
    CostRollupEngine, merge_project_resource_counts, rollup_task_costs, summarize_budget_entries,
)
from sitecost.store.base import EntityType


# ===========================================================================
# Pure rollups
# ===========================================================================

class TestRollupTaskCosts:

    def test_single_material_counts_on_both_sides(self):
        """
        unit_cost=10, quantity_used=3 → material cost 30.
        estimated_total = actual_total = 30 (materials count on both sides).
        """
        materials = [{"unit_cost": 10, "quantity_required": 5, "quantity_used": 3}]
        result = rollup_task_costs("t1", materials, [], [], [])
        assert result["materials"] == {"cost": 30.0, "count": 1}
        assert result["total"]["estimated"] == 30.0
        assert result["total"]["actual"] == 30.0
        assert result["total"]["variance"] == 0.0

    def test_worker_labor_is_actual_only(self):
        """rate 20 × 8 h, not a requirement → actual 160, required 0."""
        labor = [{"hourly_rate": 20, "hours_worked": 8, "total_cost": 160, "is_requirement": False}]
        result = rollup_task_costs("t1", [], [], labor, [])
        assert result["labor"]["actual_cost"] == 160.0
        assert result["labor"]["required_cost"] == 0.0
        assert result["labor"]["actual_workers"] == 1
        assert result["labor"]["required_workers"] == 0

    def test_requirement_labor_uses_required_quantity(self):
        """25/h × 8 h × 2 workers = 400 on the estimated side only."""
        labor = [{
            "hourly_rate": 25, "hours_worked": 8, "total_cost": 200,
            "is_requirement": True, "required_quantity": 2,
        }]
        result = rollup_task_costs("t1", [], [], labor, [])
        assert result["labor"]["required_cost"] == 400.0
        assert result["labor"]["required_workers"] == 2
        assert result["total"]["estimated"] == 400.0
        assert result["total"]["actual"] == 0.0

    def test_requirement_without_quantity_counts_one_worker(self):
        labor = [{"hourly_rate": 10, "hours_worked": 5, "is_requirement": True, "required_quantity": None}]
        result = rollup_task_costs("t1", [], [], labor, [])
        assert result["labor"]["required_cost"] == 50.0
        assert result["labor"]["required_workers"] == 1

    def test_budget_rows_split_by_type(self):
        budgets = [
            {"type": "budgeted", "amount": 1000},
            {"type": "actual", "amount": "750.50"},
            {"type": "actual", "amount": None},
        ]
        result = rollup_task_costs("t1", [], [], [], budgets)
        assert result["budget"] == {"budgeted": 1000.0, "actual": 750.5, "variance": -249.5}

    def test_no_resources_all_zero(self):
        result = rollup_task_costs("t1", [], [], [], [])
        assert result["total"] == {"estimated": 0.0, "actual": 0.0, "variance": 0.0}
        assert result["materials"]["count"] == 0
        assert result["equipment"]["count"] == 0

    def test_garbage_numbers_contribute_zero(self):
        materials = [{"unit_cost": "n/a", "quantity_used": 3}]
        equipment = [{"rental_cost_per_day": 100, "days_used": None}]
        result = rollup_task_costs("t1", materials, equipment, [], [])
        assert result["materials"]["cost"] == 0.0
        assert result["equipment"] == {"cost": 0.0, "count": 1}

    def test_totals_combine_every_source(self):
        """
        estimated = material + equipment + required_labor + budgeted
        actual    = material + equipment + actual_labor   + actual
        """
        result = rollup_task_costs(
            "t1",
            [{"unit_cost": 5, "quantity_used": 40}],
            [{"rental_cost_per_day": 150, "days_used": 3}],
            [
                {"total_cost": 200, "is_requirement": False},
                {"hourly_rate": 25, "hours_worked": 8, "is_requirement": True, "required_quantity": 2},
            ],
            [{"type": "budgeted", "amount": 1000}, {"type": "actual", "amount": 1050}],
        )
        assert result["total"]["estimated"] == 200 + 450 + 400 + 1000
        assert result["total"]["actual"] == 200 + 450 + 200 + 1050
        assert result["total"]["variance"] == -150.0


class TestSummarizeBudgetEntries:

    def test_variance_and_percentage(self):
        """budgeted 1000, actual 1200 → variance 200, 20%."""
        summary = summarize_budget_entries([
            {"type": "budgeted", "amount": 1000, "category": "Materials"},
            {"type": "actual", "amount": 1200, "category": "Materials"},
        ])
        assert summary["variance"] == 200.0
        assert summary["variance_percentage"] == 20
        assert summary["total_entries"] == 2

    def test_category_breakdown(self):
        summary = summarize_budget_entries([
            {"type": "budgeted", "amount": 500, "category": "Labor"},
            {"type": "actual", "amount": 100, "category": "Permits"},
        ])
        assert summary["category_breakdown"] == {
            "Labor": {"budgeted": 500.0, "actual": 0.0},
            "Permits": {"budgeted": 0.0, "actual": 100.0},
        }

    def test_nothing_budgeted_percentage_zero(self):
        summary = summarize_budget_entries([{"type": "actual", "amount": 300, "category": "Misc"}])
        assert summary["variance_percentage"] == 0
        assert summary["variance"] == 300.0


class TestMergeProjectResourceCounts:

    def test_missing_counts_are_zero(self):
        projects = [{"id": "p1", "name": "A"}, {"id": "p2", "name": "B"}]
        rows = merge_project_resource_counts(projects, {"p1": 3}, {"p1": 2, "p2": 1}, {})
        assert rows[0]["totalResources"] == 5
        assert rows[1] == {
            "project_id": "p2", "project_name": "B", "status": None, "progress_percent": None,
            "materialCount": 0, "laborCount": 1, "equipmentCount": 0, "totalResources": 1,
        }


# ===========================================================================
# Store-backed rollups
# ===========================================================================

class TestCostRollupEngine:

    @pytest.mark.asyncio
    async def test_compute_task_cost(self, site):
        result = await CostRollupEngine(site).compute_task_cost("t1")
        assert result["materials"]["cost"] == 200.0
        assert result["equipment"]["cost"] == 450.0
        assert result["labor"]["actual_cost"] == 200.0
        assert result["labor"]["required_cost"] == 400.0
        assert result["budget"] == {"budgeted": 1000.0, "actual": 1050.0, "variance": 50.0}
        assert result["total"] == {"estimated": 2050.0, "actual": 1900.0, "variance": -150.0}

    @pytest.mark.asyncio
    async def test_compute_task_cost_unknown_task(self, store):
        with pytest.raises(NotFoundError):
            await CostRollupEngine(store).compute_task_cost("missing")

    @pytest.mark.asyncio
    async def test_unassigned_equipment_not_counted(self, site):
        site.insert(EntityType.EQUIPMENT, id="e2", name="Crane", type="lifting",
                    availability=True, rental_cost_per_day=900, assigned_task_id=None, days_used=2)
        result = await CostRollupEngine(site).compute_task_cost("t1")
        assert result["equipment"]["count"] == 1

    @pytest.mark.asyncio
    async def test_task_budget_totals(self, site):
        site.insert(EntityType.BUDGET, id="b4", task_id="t1", category="Materials", amount=200,
                    type="budgeted", date=date(2024, 3, 3), entry_type="resource_based", material_id="m1")
        result = await CostRollupEngine(site).compute_task_budget_totals("t1")
        assert result["task_name"] == "Foundation"
        assert result["total_budgeted"] == 1200.0
        assert result["total_actual"] == 1050.0
        assert result["total_overall"] == 2250.0
        assert result["by_category"]["Materials"] == {"budgeted": 1200.0, "actual": 750.0, "total": 1950.0}
        assert result["by_type"] == {"budgeted": 1200.0, "actual": 1050.0}
        linked = [e for e in result["budget_entries"] if e["id"] == "b4"][0]
        assert linked["resource"] == {"type": "material", "name": "Cement", "unit": "bag"}

    @pytest.mark.asyncio
    async def test_labor_cost_summary(self, site):
        result = await CostRollupEngine(site).compute_labor_cost_summary("t1")
        assert result["total_workers"] == 2
        assert result["total_cost"] == 400.0
        assert result["total_hours"] == 18.0
        assert result["average_hourly_rate"] == 22.22
        assert result["type_breakdown"]["skilled_worker"]["count"] == 2

    @pytest.mark.asyncio
    async def test_labor_cost_summary_no_hours(self, site):
        site.insert(EntityType.TASK, id="t2", project_id="p1", name="Roofing", status="pending")
        result = await CostRollupEngine(site).compute_labor_cost_summary("t2")
        assert result["average_hourly_rate"] == 0
        assert result["total_workers"] == 0

    @pytest.mark.asyncio
    async def test_available_resources(self, site):
        result = await CostRollupEngine(site).list_available_resources("t1")
        assert result["materials"][0]["estimated_cost"] == 500.0
        assert result["equipment"][0]["daily_rate"] == 150.0
        estimates = {w["id"]: w["estimated_cost"] for w in result["labor"]}
        assert estimates == {"w1": 200.0, "r1": 400.0}

    @pytest.mark.asyncio
    async def test_project_budget_summary(self, store):
        store.insert(EntityType.PROJECT, id="p9", name="Bridge")
        store.insert(EntityType.TASK, id="t9", project_id="p9", name="Deck")
        store.insert(EntityType.BUDGET, task_id="t9", category="Steel", amount=1000, type="budgeted")
        store.insert(EntityType.BUDGET, task_id="t9", category="Steel", amount=1200, type="actual")
        summary = await CostRollupEngine(store).compute_project_budget_summary("p9")
        assert summary["project_id"] == "p9"
        assert summary["variance"] == 200.0
        assert summary["variance_percentage"] == 20

    @pytest.mark.asyncio
    async def test_project_budget_summary_without_tasks(self, store):
        store.insert(EntityType.PROJECT, id="p0", name="Empty")
        summary = await CostRollupEngine(store).compute_project_budget_summary("p0")
        assert summary["total_entries"] == 0
        assert summary["variance_percentage"] == 0

    @pytest.mark.asyncio
    async def test_project_budget_summary_unknown_project(self, store):
        with pytest.raises(NotFoundError):
            await CostRollupEngine(store).compute_project_budget_summary("nope")

    @pytest.mark.asyncio
    async def test_project_stats(self, site):
        site.insert(EntityType.TASK, id="t2", project_id="p1", name="Walls", status="completed")
        site.insert(EntityType.TASK, id="t3", project_id="p1", name="Roof", status="pending")
        site.insert(EntityType.ISSUE, project_id="p1", status="open", description="Leak")
        site.insert(EntityType.ISSUE, project_id="p1", status="resolved", description="Permit")
        stats = await CostRollupEngine(site).compute_project_stats("p1")
        assert stats["tasks"] == {
            "total": 3, "completed": 1, "in_progress": 1, "pending": 1, "completion_rate": 33,
        }
        # the stored headline estimate is reported as-is, next to the Budget-row totals
        assert stats["budget"]["estimated"] == 5000.0
        assert stats["budget"]["budgeted"] == 1000.0
        assert stats["budget"]["actual"] == 1050.0
        assert stats["issues"] == {"total": 2, "open": 1, "resolved": 1}

    @pytest.mark.asyncio
    async def test_task_cost_survives_failed_budget_query(self, site, caplog):
        """
        Budget rows unavailable: the resource side is still rolled up.
        estimated = 200 + 450 + 400 = 1050, actual = 200 + 450 + 200 = 850.
        """
        site.fail("find_all", EntityType.BUDGET)
        with caplog.at_level(logging.WARNING, logger="sitecost-rollup"):
            result = await CostRollupEngine(site).compute_task_cost("t1")
        assert result["materials"]["cost"] == 200.0
        assert result["budget"] == {"budgeted": 0.0, "actual": 0.0, "variance": 0.0}
        assert result["total"] == {"estimated": 1050.0, "actual": 850.0, "variance": -200.0}
        assert any(getattr(r, "degraded", None) == "budgets" for r in caplog.records)

    @pytest.mark.asyncio
    async def test_unknown_task_still_not_found_when_queries_fail(self, site):
        site.fail("find_all")
        with pytest.raises(NotFoundError):
            await CostRollupEngine(site).compute_task_cost("missing")

    @pytest.mark.asyncio
    async def test_project_stats_survive_failed_issue_query(self, site):
        site.fail("find_all", EntityType.ISSUE)
        stats = await CostRollupEngine(site).compute_project_stats("p1")
        assert stats["issues"] == {"total": 0, "open": 0, "resolved": 0}
        assert stats["tasks"]["total"] == 1
        assert stats["budget"]["budgeted"] == 1000.0

    @pytest.mark.asyncio
    async def test_project_budget_summary_survives_failed_budget_query(self, site):
        site.fail("find_all", EntityType.BUDGET)
        summary = await CostRollupEngine(site).compute_project_budget_summary("p1")
        assert summary["total_entries"] == 0
        assert summary["variance"] == 0.0

    @pytest.mark.asyncio
    async def test_labor_summary_survives_failed_labor_query(self, site):
        site.fail("find_all", EntityType.LABOR)
        summary = await CostRollupEngine(site).compute_labor_cost_summary("t1")
        assert summary["total_workers"] == 0
        assert summary["average_hourly_rate"] == 0

    @pytest.mark.asyncio
    async def test_resource_counts_per_project(self, site):
        site.insert(EntityType.PROJECT, id="p2", name="Warehouse")
        rows = await CostRollupEngine(site).compute_project_resource_counts()
        by_id = {r["project_id"]: r for r in rows}
        assert by_id["p1"]["materialCount"] == 1
        assert by_id["p1"]["laborCount"] == 2
        assert by_id["p1"]["equipmentCount"] == 1
        assert by_id["p1"]["totalResources"] == 4
        assert by_id["p2"]["totalResources"] == 0

    @pytest.mark.asyncio
    async def test_resource_counts_degrade_per_entity(self, site):
        site.fail("aggregate", EntityType.LABOR)
        rows = await CostRollupEngine(site).compute_project_resource_counts()
        assert rows[0]["laborCount"] == 0
        assert rows[0]["materialCount"] == 1

    @pytest.mark.asyncio
    async def test_portfolio_budget(self, site):
        result = await CostRollupEngine(site).summarize_portfolio_budget()
        assert result["totalBudgeted"] == "1000.00"
        assert result["totalActual"] == "1050.00"
        assert result["variance"] == "50.00"
        assert result["utilizationPercent"] == "105.00"
        assert {"category": "Labor", "type": "actual", "totalAmount": "300.00"} in result["byCategory"]

    @pytest.mark.asyncio
    async def test_portfolio_budget_empty(self, store):
        result = await CostRollupEngine(store).summarize_portfolio_budget()
        assert result == {
            "totalBudgeted": "0.00", "totalActual": "0.00", "variance": "0.00",
            "utilizationPercent": "0.00", "byCategory": [],
        }
