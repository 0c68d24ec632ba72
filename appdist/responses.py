"""
Uniform response envelope: ``{success, message, data?, details?}``.
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi.responses import JSONResponse


def success_response(
    status_code: int, data: Any = None, message: str = "Success"
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": True, "message": message, "data": data},
    )


def error_response(
    status_code: int, message: str, details: Optional[str] = None
) -> JSONResponse:
    payload = {"success": False, "message": message}
    if details:
        payload["details"] = details
    return JSONResponse(status_code=status_code, content=payload)
