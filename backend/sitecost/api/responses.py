"""Response envelope shared by every router."""
from typing import Any, Dict, Optional


def ok(data: Any = None, message: Optional[str] = None, **extra: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body


def failure(message: str, error: Any = None) -> Dict[str, Any]:
    return {"success": False, "message": message, "error": error if error is not None else message}
