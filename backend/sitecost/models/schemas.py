"""Request / input models for the cost services (pydantic v2)."""
from datetime import date
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, model_validator

from sitecost.errors import ValidationError
from sitecost.models.enums import (
    BudgetEntryType, BudgetType, DateGrouping, LaborStatus, LaborType, QuotationType,
)

M = TypeVar("M", bound=BaseModel)

# the "date" fields below shadow datetime.date inside their class bodies
_Date = date


def parse_input(model: Type[M], data: Any) -> M:
    """Validate ``data`` against ``model``, surfacing the first problem as a ValidationError."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "__root__")
        message = first.get("msg", "Invalid input")
        if field:
            message = f"{field}: {message}"
        raise ValidationError(message, field=field or None)


# ── Budgets ──────────────────────────────────────────────────────────────────

class BudgetEntryCreate(BaseModel):
    task_id: str
    category: str = Field(..., min_length=1, description="Free-form, e.g. Materials, Labor")
    type: BudgetType
    date: Optional[_Date] = None
    entry_type: BudgetEntryType = BudgetEntryType.MANUAL
    quantity: float = Field(1, ge=0, description="Units, days or worker multiplier")
    amount: Optional[float] = Field(None, ge=0)
    material_id: Optional[str] = None
    equipment_id: Optional[str] = None
    labor_id: Optional[str] = None

    @model_validator(mode="after")
    def _one_resource_at_most(self):
        refs = [r for r in (self.material_id, self.equipment_id, self.labor_id) if r]
        if len(refs) > 1:
            raise ValueError("only one of material_id, equipment_id, labor_id may be set")
        return self

    def resource_ref(self) -> Optional[Dict[str, str]]:
        for kind in ("material", "equipment", "labor"):
            ref = getattr(self, f"{kind}_id")
            if ref:
                return {"kind": kind, "id": ref}
        return None


class BudgetEntryUpdate(BaseModel):
    task_id: Optional[str] = None
    category: Optional[str] = Field(None, min_length=1)
    amount: Optional[float] = Field(None, ge=0)
    type: Optional[BudgetType] = None
    date: Optional[_Date] = None


class BudgetListFilters(BaseModel):
    task_id: Optional[str] = None
    project_id: Optional[str] = None
    type: Optional[BudgetType] = None
    category: Optional[str] = None
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=500)


# ── Resources ────────────────────────────────────────────────────────────────

class LaborCreate(BaseModel):
    task_id: str
    worker_name: str = Field(..., min_length=1)
    worker_type: LaborType
    hourly_rate: float = Field(..., ge=0)
    hours_worked: float = Field(0, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: LaborStatus = LaborStatus.ACTIVE
    phone: Optional[str] = None
    skills: list = Field(default_factory=list)
    is_requirement: bool = False
    required_quantity: int = Field(1, ge=1)


class LaborUpdate(BaseModel):
    task_id: Optional[str] = None
    worker_name: Optional[str] = Field(None, min_length=1)
    worker_type: Optional[LaborType] = None
    hourly_rate: Optional[float] = Field(None, ge=0)
    hours_worked: Optional[float] = Field(None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[LaborStatus] = None
    phone: Optional[str] = None
    skills: Optional[list] = None
    is_requirement: Optional[bool] = None
    required_quantity: Optional[int] = Field(None, ge=1)


class MaterialUsageUpdate(BaseModel):
    quantity_used: float


class EquipmentAssign(BaseModel):
    task_id: str


class EquipmentDaysUpdate(BaseModel):
    days_used: float


# ── Reporting ────────────────────────────────────────────────────────────────

class DateRangeQuery(BaseModel):
    start_date: date
    end_date: date
    group_by: DateGrouping = DateGrouping.DAY

    @model_validator(mode="after")
    def _ordered(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class QuotationRequest(BaseModel):
    quotation_type: QuotationType = QuotationType.BOTH
