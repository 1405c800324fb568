"""
conftest.py — Shared pytest fixtures for the SiteCost backend test suite.

No database is needed: services are exercised against
``InMemoryResourceStore`` (tests/in_memory_store.py), and the HTTP tests run
the FastAPI app with ``get_store`` / ``get_current_admin`` overridden.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``sitecost.*`` imports resolve correctly regardless of where pytest is invoked.
"""

import sys
import os
from datetime import date, datetime, timezone

import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any sitecost imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

_TESTS_DIR = os.path.dirname(os.path.abspath(__file__))
if _TESTS_DIR not in sys.path:
    sys.path.insert(0, _TESTS_DIR)


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def store():
    """Empty in-memory store."""
    from in_memory_store import InMemoryResourceStore
    return InMemoryResourceStore()


@pytest.fixture
def site(store):
    """
    One engineer, one project, one task with a small resource mix.

    Task "t1" resources:
      material  m1: 100 units @ 5.00, 40 used         → cost 200.00
      equipment e1: 150.00/day, 3 days, assigned      → cost 450.00
      labor     w1: 20.00/h × 10 h (worker)           → total_cost 200.00
      labor     r1: 25.00/h × 8 h × 2 (requirement)   → required 400.00
      budgets:  Materials budgeted 1000, Materials actual 750, Labor actual 300
    """
    from sitecost.store.base import EntityType

    created = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)
    store.insert(
        EntityType.ADMIN, id="a1", name="Wanjiru Kamau", email="wanjiru@example.com",
        phone="+254700000001", role="engineer", is_active=True, last_login=None,
    )
    store.insert(
        EntityType.PROJECT, id="p1", name="Riverside Apartments", status="in_progress",
        construction_type="building", start_date=date(2024, 3, 1), end_date=date(2024, 12, 31),
        budget_estimate=5000.0, actual_cost=1200.0, currency="KES", engineer_in_charge="a1",
        progress_percent=40, client_name="Riverside Ltd", location_name="Nairobi",
        created_at=created,
    )
    store.insert(
        EntityType.TASK, id="t1", project_id="p1", name="Foundation", status="in_progress",
        start_date=date(2024, 3, 1), due_date=date(2024, 4, 1), progress_percent=50,
        assigned_to_admin="a1", created_at=created,
    )
    store.insert(
        EntityType.MATERIAL, id="m1", task_id="t1", name="Cement", unit="bag",
        unit_cost=5.0, quantity_required=100.0, quantity_used=40.0,
    )
    store.insert(
        EntityType.EQUIPMENT, id="e1", name="Excavator", type="earthmoving", availability=False,
        rental_cost_per_day=150.0, assigned_task_id="t1", days_used=3,
    )
    store.insert(
        EntityType.LABOR, id="w1", task_id="t1", worker_name="Otieno", worker_type="skilled_worker",
        hourly_rate=20.0, hours_worked=10.0, total_cost=200.0, status="active",
        is_requirement=False, required_quantity=1,
    )
    store.insert(
        EntityType.LABOR, id="r1", task_id="t1", worker_name="Mason crew", worker_type="skilled_worker",
        hourly_rate=25.0, hours_worked=8.0, total_cost=200.0, status="active",
        is_requirement=True, required_quantity=2,
    )
    store.insert(
        EntityType.BUDGET, id="b1", task_id="t1", category="Materials", amount=1000.0,
        type="budgeted", date=date(2024, 3, 2), entry_type="manual",
    )
    store.insert(
        EntityType.BUDGET, id="b2", task_id="t1", category="Materials", amount=750.0,
        type="actual", date=date(2024, 3, 10), entry_type="manual",
    )
    store.insert(
        EntityType.BUDGET, id="b3", task_id="t1", category="Labor", amount=300.0,
        type="actual", date=date(2024, 3, 5), entry_type="manual",
    )
    return store


@pytest.fixture
def settings():
    from sitecost.config import Settings
    return Settings(json_logs=False, log_level="WARNING", jwt_secret_key="test-secret")
