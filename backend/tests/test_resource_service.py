"""
test_resource_service.py — Writes feeding the rollups.

Tests cover:
  - Labor total_cost derivation on create and on partial update
  - Material usage bounds
  - Equipment assign / release / days used
  - Task cascade delete: all child tables removed, all-or-nothing
"""

import pytest

from sitecost.errors import NotFoundError, ValidationError
from sitecost.services.resource_service import ResourceService
from sitecost.store.base import EntityType


class TestLabor:

    @pytest.mark.asyncio
    async def test_create_derives_total_cost(self, site):
        """20/h × 8 h = 160"""
        row = await ResourceService(site).create_labor({
            "task_id": "t1", "worker_name": "Akinyi", "worker_type": "foreman",
            "hourly_rate": 20, "hours_worked": 8,
        })
        assert row["total_cost"] == 160.0
        assert row["worker_type"] == "foreman"
        assert row["status"] == "active"
        assert row["is_requirement"] is False

    @pytest.mark.asyncio
    async def test_create_ignores_client_total_cost(self, site):
        row = await ResourceService(site).create_labor({
            "task_id": "t1", "worker_name": "Akinyi", "worker_type": "foreman",
            "hourly_rate": 10, "hours_worked": 3, "total_cost": 99999,
        })
        assert row["total_cost"] == 30.0

    @pytest.mark.asyncio
    async def test_create_for_unknown_task(self, store):
        with pytest.raises(NotFoundError):
            await ResourceService(store).create_labor({
                "task_id": "nope", "worker_name": "X", "worker_type": "engineer", "hourly_rate": 1,
            })

    @pytest.mark.asyncio
    async def test_create_rejects_bad_worker_type(self, site):
        with pytest.raises(ValidationError):
            await ResourceService(site).create_labor({
                "task_id": "t1", "worker_name": "X", "worker_type": "astronaut", "hourly_rate": 1,
            })

    @pytest.mark.asyncio
    async def test_update_hours_recomputes_with_stored_rate(self, site):
        """w1 rate 20 stays; hours 10 → 12 gives 240"""
        row = await ResourceService(site).update_labor("w1", {"hours_worked": 12})
        assert row["total_cost"] == 240.0
        assert row["hourly_rate"] == 20.0

    @pytest.mark.asyncio
    async def test_update_rate_recomputes(self, site):
        row = await ResourceService(site).update_labor("w1", {"hourly_rate": 30})
        assert row["total_cost"] == 300.0

    @pytest.mark.asyncio
    async def test_update_unknown(self, site):
        with pytest.raises(NotFoundError):
            await ResourceService(site).update_labor("ghost", {"hours_worked": 1})

    @pytest.mark.asyncio
    async def test_update_null_phone_keeps_stored_value(self, site):
        service = ResourceService(site)
        await service.update_labor("w1", {"phone": "+254711000000"})
        row = await service.update_labor("w1", {"phone": None})
        assert row["phone"] == "+254711000000"
        assert row["total_cost"] == 200.0


class TestMaterialUsage:

    @pytest.mark.asyncio
    async def test_record_usage(self, site):
        row = await ResourceService(site).update_material_usage("m1", {"quantity_used": 100})
        assert row["quantity_used"] == 100

    @pytest.mark.asyncio
    async def test_negative_usage(self, site):
        with pytest.raises(ValidationError):
            await ResourceService(site).update_material_usage("m1", {"quantity_used": -1})

    @pytest.mark.asyncio
    async def test_usage_over_required(self, site):
        with pytest.raises(ValidationError) as exc:
            await ResourceService(site).update_material_usage("m1", {"quantity_used": 100.5})
        assert exc.value.field == "quantity_used"
        assert (await site.find_by_id(EntityType.MATERIAL, "m1"))["quantity_used"] == 40.0


class TestEquipment:

    @pytest.mark.asyncio
    async def test_assign_marks_unavailable(self, site):
        site.insert(EntityType.EQUIPMENT, id="e2", name="Mixer", type="concrete",
                    availability=True, rental_cost_per_day=80, assigned_task_id=None, days_used=0)
        row = await ResourceService(site).assign_equipment("e2", {"task_id": "t1"})
        assert row["assigned_task_id"] == "t1"
        assert row["availability"] is False

    @pytest.mark.asyncio
    async def test_assign_unavailable(self, site):
        with pytest.raises(ValidationError):
            await ResourceService(site).assign_equipment("e1", {"task_id": "t1"})

    @pytest.mark.asyncio
    async def test_release(self, site):
        row = await ResourceService(site).release_equipment("e1")
        assert row["assigned_task_id"] is None
        assert row["availability"] is True

    @pytest.mark.asyncio
    async def test_days_used(self, site):
        row = await ResourceService(site).record_equipment_days("e1", {"days_used": 5})
        assert row["days_used"] == 5

    @pytest.mark.asyncio
    async def test_negative_days(self, site):
        with pytest.raises(ValidationError):
            await ResourceService(site).record_equipment_days("e1", {"days_used": -2})


class TestDeleteTaskCascade:

    @pytest.mark.asyncio
    async def test_removes_task_and_children(self, site):
        site.insert(EntityType.PROGRESS_UPDATE, task_id="t1", description="Started", progress_percent=10)
        removed = await ResourceService(site).delete_task_cascade("t1")
        assert removed == {
            "budget": 3, "progress_update": 1, "material": 1, "equipment": 1, "labor": 2, "task": 1,
        }
        assert await site.find_by_id(EntityType.TASK, "t1") is None
        for entity in (EntityType.BUDGET, EntityType.MATERIAL, EntityType.EQUIPMENT, EntityType.LABOR):
            assert site.rows(entity) == []
        # the project is untouched
        assert await site.find_by_id(EntityType.PROJECT, "p1") is not None

    @pytest.mark.asyncio
    async def test_failure_rolls_back_every_table(self, site):
        site.fail("destroy_where", EntityType.LABOR)
        with pytest.raises(RuntimeError):
            await ResourceService(site).delete_task_cascade("t1")
        assert await site.find_by_id(EntityType.TASK, "t1") is not None
        assert len(site.rows(EntityType.BUDGET)) == 3
        assert len(site.rows(EntityType.MATERIAL)) == 1

    @pytest.mark.asyncio
    async def test_unknown_task(self, store):
        with pytest.raises(NotFoundError):
            await ResourceService(store).delete_task_cascade("nope")
