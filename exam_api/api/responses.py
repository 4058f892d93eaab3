"""
JSON envelope helpers

Every response body has the shape
{success, message?, data?, count?, error?}; keys are only present when set.
"""

from typing import Any, Optional

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from exam_api.core.config import settings

_UNSET: Any = object()


def success_response(
    data: Any = _UNSET,
    message: Optional[str] = None,
    count: Optional[int] = None,
    status_code: int = status.HTTP_200_OK,
) -> JSONResponse:
    content: dict = {"success": True}
    if message is not None:
        content["message"] = message
    if count is not None:
        content["count"] = count
    if data is not _UNSET:
        content["data"] = data
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


def list_response(rows: list, message: Optional[str] = None) -> JSONResponse:
    return success_response(data=rows, count=len(rows), message=message)


def error_response(
    message: str,
    status_code: int,
    error: Optional[str] = None,
    **extra: Any,
) -> JSONResponse:
    content: dict = {"success": False, "message": message}
    content.update(extra)
    if error is not None and settings.is_development:
        content["error"] = error
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))
