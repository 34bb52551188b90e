"""
responses.py - the JSON envelope every endpoint answers with.

    {success, message, status_code, data?, errors?, meta: {api_version, timestamp}}
"""

from datetime import datetime, timezone
from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from config import API_VERSION

DEFAULT_SUCCESS_MESSAGE = "Operation completed successfully"
DEFAULT_ERROR_MESSAGE = "An error occurred while processing your request"
DEFAULT_CREATED_MESSAGE = "Resource created successfully"
DEFAULT_DELETED_MESSAGE = "Resource deleted successfully"


def api_response(
    success: bool,
    message: str | None,
    data: Any = None,
    errors: dict | None = None,
    status_code: int = 200,
    headers: dict | None = None,
) -> JSONResponse:
    body = {
        "success": success,
        "message": message,
        "status_code": status_code,
    }
    if data is not None:
        body["data"] = data
    if errors:
        body["errors"] = errors
    body["meta"] = {
        "api_version": API_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    return JSONResponse(content=jsonable_encoder(body), status_code=status_code, headers=headers)


def send_success(data: Any = None, message: str | None = None, status_code: int = 200) -> JSONResponse:
    return api_response(True, message or DEFAULT_SUCCESS_MESSAGE, data, None, status_code)


def send_created(data: Any = None, message: str | None = None) -> JSONResponse:
    return api_response(True, message or DEFAULT_CREATED_MESSAGE, data, None, 201)


def send_error(
    message: str | None = None,
    errors: dict | None = None,
    status_code: int = 400,
    headers: dict | None = None,
) -> JSONResponse:
    return api_response(False, message or DEFAULT_ERROR_MESSAGE, None, errors, status_code, headers)
