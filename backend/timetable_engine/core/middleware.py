from __future__ import annotations

from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Rejects generation payloads whose declared body size exceeds the configured limit."""

    def __init__(self, app, *, max_bytes: int) -> None:
        super().__init__(app)
        self._max_bytes = max(1, max_bytes)

    async def dispatch(self, request: Request, call_next) -> Response:
        if request.scope.get("type") != "http":
            return await call_next(request)

        declared = request.headers.get("content-length")
        if not declared:
            return await call_next(request)
        try:
            size = int(declared)
        except ValueError:
            size = 0
        if size > self._max_bytes:
            return JSONResponse(
                status_code=413,
                content={
                    "message": "Timetable configuration too large",
                    "details": {"size_bytes": size, "max_bytes": self._max_bytes},
                },
            )
        return await call_next(request)
