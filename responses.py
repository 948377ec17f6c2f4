from typing import Any, Optional

from database import to_public


def api_response(data: Any = None, message: Optional[str] = None, **extra: Any) -> dict:
    """Success envelope: ``{"success": true, "data": ..., "message": ...}``."""
    body = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = to_public(data)
    body.update(extra)
    return body
