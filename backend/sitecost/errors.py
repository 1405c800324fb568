"""Error taxonomy shared by the services and the HTTP layer."""
from typing import Any, Optional


class SiteCostError(Exception):
    """Base class. Carries an HTTP status so the API layer can map it directly."""

    status_code: int = 500

    def __init__(self, message: str, detail: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail if detail is not None else message


class NotFoundError(SiteCostError):
    status_code = 404

    def __init__(self, entity: str, entity_id: Any = None):
        label = entity.replace("_", " ").capitalize()
        super().__init__(
            f"{label} not found",
            detail=f"{entity} {entity_id} does not exist" if entity_id is not None else None,
        )
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(SiteCostError):
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, detail={"field": field} if field else None)
        self.field = field
