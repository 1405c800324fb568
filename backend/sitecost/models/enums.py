"""Closed value sets used by the ORM columns and the enum-complete breakdowns."""
import enum
from typing import List


class _ValuesMixin:
    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]


class ProjectStatus(_ValuesMixin, str, enum.Enum):
    PLANNING = "planning"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ON_HOLD = "on_hold"
    CANCELLED = "cancelled"


class ConstructionType(_ValuesMixin, str, enum.Enum):
    BUILDING = "building"
    INFRASTRUCTURE = "infrastructure"
    INDUSTRIAL = "industrial"
    SPECIALIZED = "specialized"
    OTHER = "other"


class TaskStatus(_ValuesMixin, str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class IssueStatus(_ValuesMixin, str, enum.Enum):
    OPEN = "open"
    RESOLVED = "resolved"
    IN_REVIEW = "in_review"


class IssueCategory(_ValuesMixin, str, enum.Enum):
    GENERAL_INQUIRY = "general_inquiry"
    PROJECT_INQUIRY = "project_inquiry"
    TECHNICAL_SUPPORT = "technical_support"
    BILLING_QUESTION = "billing_question"
    COMPLAINT = "complaint"
    SUGGESTION = "suggestion"
    OTHER = "other"


class LaborStatus(_ValuesMixin, str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ON_LEAVE = "on_leave"


class LaborType(_ValuesMixin, str, enum.Enum):
    FOREMAN = "foreman"
    SKILLED_WORKER = "skilled_worker"
    UNSKILLED_WORKER = "unskilled_worker"
    ENGINEER = "engineer"
    SUPERVISOR = "supervisor"


class AdminRole(_ValuesMixin, str, enum.Enum):
    ENGINEER = "engineer"
    PROJECT_MANAGER = "project_manager"
    SUPER_ADMIN = "super_admin"


class DocumentType(_ValuesMixin, str, enum.Enum):
    PROJECT_DOCUMENT = "project_document"
    COMPANY_DOCUMENT = "company_document"
    TEMPLATE = "template"
    POLICY = "policy"
    CONTRACT = "contract"
    OTHER = "other"


class BudgetType(_ValuesMixin, str, enum.Enum):
    BUDGETED = "budgeted"
    ACTUAL = "actual"


class BudgetEntryType(_ValuesMixin, str, enum.Enum):
    MANUAL = "manual"
    RESOURCE_BASED = "resource_based"


class QuotationType(_ValuesMixin, str, enum.Enum):
    BUDGETED = "budgeted"
    ACTUAL = "actual"
    BOTH = "both"


class DateGrouping(_ValuesMixin, str, enum.Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


# Equipment availability is a boolean column, not a string enum, but the
# dashboard still reports both values.
EQUIPMENT_AVAILABILITY: List[bool] = [True, False]
