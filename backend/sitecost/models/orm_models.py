"""ORM Models for SiteCost — SQLAlchemy 2.0"""
import uuid
from datetime import datetime, date
from decimal import Decimal
from typing import Optional
from sqlalchemy import (
    String, Text, Boolean, Integer, Numeric, DateTime, Date,
    ForeignKey, Index, event,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func
from sitecost.db import Base
from sitecost.services.cost_calculator import labor_total_cost

_Date = date


def gen_uuid():
    return str(uuid.uuid4())


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


# ── PEOPLE ────────────────────────────────────────────────────────────────────
class Admin(TimestampMixin, Base):
    __tablename__ = "admins"
    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    password: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(String(30), nullable=False, default="engineer")
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    profile_picture: Mapped[Optional[str]] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    projects: Mapped[list["Project"]] = relationship("Project", back_populates="engineer")


class User(TimestampMixin, Base):
    __tablename__ = "users"
    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


# ── PROJECTS & TASKS ──────────────────────────────────────────────────────────
class Project(TimestampMixin, Base):
    __tablename__ = "projects"
    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    location_name: Mapped[Optional[str]] = mapped_column(String(255))
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="planning", index=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[Optional[date]] = mapped_column(Date)
    # Headline figures typed in by the PM. Not derived from, and never
    # reconciled with, the Budget-table rollup.
    budget_estimate: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2))
    actual_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2), default=0)
    currency: Mapped[str] = mapped_column(String(10), nullable=False, default="KES")
    contractor_name: Mapped[Optional[str]] = mapped_column(String(255))
    client_name: Mapped[Optional[str]] = mapped_column(String(255))
    funding_source: Mapped[Optional[str]] = mapped_column(String(255))
    engineer_in_charge: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("admins.id"), nullable=False, index=True
    )
    progress_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    construction_type: Mapped[str] = mapped_column(String(30), nullable=False, default="building")
    floor_size: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2))
    document_urls: Mapped[Optional[list]] = mapped_column(JSONB, default=list)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    engineer: Mapped[Optional["Admin"]] = relationship("Admin", back_populates="projects")
    tasks: Mapped[list["Task"]] = relationship("Task", back_populates="project")


class Task(TimestampMixin, Base):
    __tablename__ = "tasks"
    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    project_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("projects.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="pending", index=True)
    progress_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    assigned_to_admin: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("admins.id"), nullable=False
    )
    project: Mapped["Project"] = relationship("Project", back_populates="tasks")


class ProgressUpdate(TimestampMixin, Base):
    __tablename__ = "progress_updates"
    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    task_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("tasks.id"), nullable=False, index=True
    )
    description: Mapped[Optional[str]] = mapped_column(Text)
    progress_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    image_urls: Mapped[Optional[list]] = mapped_column(JSONB, default=list)


# ── RESOURCES ─────────────────────────────────────────────────────────────────
class Material(TimestampMixin, Base):
    __tablename__ = "materials"
    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    task_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("tasks.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    unit: Mapped[str] = mapped_column(String(50), nullable=False)
    unit_cost: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    quantity_required: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    # 0 <= quantity_used <= quantity_required is checked by the usage update only
    quantity_used: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2), default=0)


class Equipment(TimestampMixin, Base):
    __tablename__ = "equipment"
    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(100), nullable=False)
    availability: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    rental_cost_per_day: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2))
    assigned_task_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False), ForeignKey("tasks.id"), index=True
    )
    days_used: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), default=0)


class Labor(TimestampMixin, Base):
    __tablename__ = "labor"
    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    task_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("tasks.id"), nullable=False, index=True
    )
    worker_name: Mapped[str] = mapped_column(String(255), nullable=False)
    worker_type: Mapped[str] = mapped_column(String(30), nullable=False)
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    hours_worked: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False, default=0)
    total_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    start_date: Mapped[Optional[date]] = mapped_column(Date)
    end_date: Mapped[Optional[date]] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="active")
    phone: Mapped[Optional[str]] = mapped_column(String(50))
    skills: Mapped[Optional[list]] = mapped_column(JSONB, default=list)
    # Requirement rows are planned headcount; the rest are assigned workers
    is_requirement: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    required_quantity: Mapped[Optional[int]] = mapped_column(Integer, default=1)


@event.listens_for(Labor, "before_insert")
@event.listens_for(Labor, "before_update")
def _recompute_labor_total(mapper, connection, target: Labor) -> None:
    target.total_cost = labor_total_cost(target.hourly_rate, target.hours_worked)


class Budget(TimestampMixin, Base):
    __tablename__ = "budgets"
    __table_args__ = (Index("ix_budgets_task_type", "task_id", "type"),)
    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    task_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("tasks.id"), nullable=False, index=True
    )
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # budgeted | actual
    # the column name shadows datetime.date inside the class body
    date: Mapped[_Date] = mapped_column(Date, nullable=False)
    material_id: Mapped[Optional[str]] = mapped_column(UUID(as_uuid=False), ForeignKey("materials.id"))
    equipment_id: Mapped[Optional[str]] = mapped_column(UUID(as_uuid=False), ForeignKey("equipment.id"))
    labor_id: Mapped[Optional[str]] = mapped_column(UUID(as_uuid=False), ForeignKey("labor.id"))
    entry_type: Mapped[str] = mapped_column(String(20), nullable=False, default="manual")
    # Point-in-time capture of the resource rate at creation; never recomputed
    calculated_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2))
    quantity: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), default=1)


# ── SUPPORT ───────────────────────────────────────────────────────────────────
class Issue(TimestampMixin, Base):
    __tablename__ = "issues"
    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(30), nullable=False, default="general_inquiry")
    project_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False), ForeignKey("projects.id"), index=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="open")


class Document(TimestampMixin, Base):
    __tablename__ = "documents"
    id: Mapped[str] = mapped_column(UUID(as_uuid=False), primary_key=True, default=gen_uuid)
    document_type: Mapped[str] = mapped_column(String(30), nullable=False, default="company_document")
    category: Mapped[Optional[str]] = mapped_column(String(100))
    description: Mapped[Optional[str]] = mapped_column(Text)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_type: Mapped[str] = mapped_column(String(100), nullable=False)
    file_url: Mapped[str] = mapped_column(Text, nullable=False)
    uploaded_by_admin_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("admins.id"), nullable=False
    )
