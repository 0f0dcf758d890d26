"""
JSON error bodies for the relay API: {"error": ..., ...} at the top level, as the frontend expects.
"""
from typing import Any

from fastapi import Request, status
from fastapi.responses import JSONResponse

from etsy_relay.etsy_client import UpstreamError


class ApiError(Exception):
    def __init__(self, status_code: int, error: str, **extra: Any) -> None:
        super().__init__(error)
        self.status_code = status_code
        self.body = {"error": error, **extra}


def upstream_failure(exc: UpstreamError, error: str, *, with_details: bool = False) -> ApiError:
    """Forward the upstream status when there is one; 500 otherwise."""
    status_code = exc.status_code or status.HTTP_500_INTERNAL_SERVER_ERROR
    if with_details:
        return ApiError(status_code, error, details=exc.detail)
    return ApiError(status_code, error)


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.body)
