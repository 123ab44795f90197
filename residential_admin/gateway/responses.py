"""
Residential Admin - Response Envelope

Every API response, success or failure, has the same shape:

    {
        "success": bool,
        "message": str,
        "data": ...,        # success only, optional
        "errors": [...],    # failure only, optional
        "meta": {"timestamp", "operation", "version", "requestId"}
    }

operation is the upper-cased name of the matched route (LOGIN, GET_LOGS...).
"""

import math
from typing import Any, Dict, List, Optional

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from residential_admin.config import settings
from residential_admin.time_utils import to_utc_z, utcnow


def operation_name(request: Request) -> str:
    """Upper-cased name of the route handling the request."""
    route = request.scope.get("route")
    name = getattr(route, "name", None)
    return name.upper() if name else "UNKNOWN"


def build_meta(request: Request, operation: Optional[str] = None) -> Dict[str, Any]:
    return {
        "timestamp": to_utc_z(utcnow()),
        "operation": operation or operation_name(request),
        "version": settings.API_VERSION,
        "requestId": getattr(request.state, "request_id", None),
    }


def ok(
    request: Request,
    data: Any = None,
    message: str = "Operation completed successfully",
    operation: Optional[str] = None,
) -> Dict[str, Any]:
    """Success envelope, returned as-is from route handlers."""
    body = {"success": True, "message": message}
    if data is not None:
        body["data"] = jsonable_encoder(data)
    body["meta"] = build_meta(request, operation)
    return body


def error_body(
    request: Request,
    message: str,
    errors: Optional[List[Dict[str, Any]]] = None,
    operation: Optional[str] = None,
) -> Dict[str, Any]:
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = jsonable_encoder(errors)
    body["meta"] = build_meta(request, operation)
    return body


def error_response(
    request: Request,
    status_code: int,
    message: str,
    errors: Optional[List[Dict[str, Any]]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Failure envelope as a JSONResponse with the given status."""
    return JSONResponse(
        status_code=status_code,
        content=error_body(request, message, errors),
        headers=headers,
    )


def paginated(items: List[Any], total: int, page: int, limit: int) -> Dict[str, Any]:
    """Data payload for list endpoints."""
    pages = math.ceil(total / limit) if limit else 0
    return {
        "items": items,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": pages,
            "has_next": page < pages,
            "has_prev": page > 1,
        },
    }
