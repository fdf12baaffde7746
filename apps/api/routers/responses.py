"""Shared JSON error responses."""

from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse

from services.exceptions import status_for


def failure_response(
    error: Optional[str],
    error_code: Optional[str],
    status_code: Optional[int] = None,
    **extra: Any,
) -> JSONResponse:
    """Render a business failure as ``{success: false, error}``."""
    content: Dict[str, Any] = {"success": False, "error": error or "Request failed", "error_code": error_code}
    content.update({key: value for key, value in extra.items() if value is not None})
    return JSONResponse(status_code=status_code or status_for(error_code), content=content)
