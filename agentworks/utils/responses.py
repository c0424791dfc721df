"""
Response envelope helpers.

Every endpoint answers {"success": true, "data": ..., "timestamp": ...}
or {"success": false, "message": ...}.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel


def success_response(data: Any) -> dict[str, Any]:
    """Wrap a result in the success envelope, serializing schemas by alias."""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json", by_alias=True)
    return {
        "success": True,
        "data": data,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def error_payload(message: str, stack: Optional[str] = None, **extra: Any) -> dict[str, Any]:
    """Failure envelope; the stack trace is only passed outside production."""
    payload: dict[str, Any] = {"success": False, "message": message, **extra}
    if stack:
        payload["stack"] = stack
    return payload
