"""Correlation-id middleware tying API requests to profiling samples."""

from __future__ import annotations

import uuid
from typing import Callable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from .profiling import (
    profile_enabled,
    profile_section,
    reset_correlation_id,
    set_correlation_id,
)

CORRELATION_HEADER = "X-Leveling-Run-ID"


class ProfilingMiddleware(BaseHTTPMiddleware):
    """Tag every profiled sample recorded during a request with its run id.

    The id is taken from the incoming ``X-Leveling-Run-ID`` header when the
    caller supplies one, so a UI can correlate its own logs with the trace.
    """

    async def dispatch(self, request: Request, call_next: Callable):  # type: ignore[override]
        if not profile_enabled():
            return await call_next(request)

        run_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
        token = set_correlation_id(run_id)
        try:
            with profile_section(f"api{request.url.path}"):
                response = await call_next(request)
        finally:
            reset_correlation_id(token)
        response.headers[CORRELATION_HEADER] = run_id
        return response


__all__ = ["CORRELATION_HEADER", "ProfilingMiddleware"]
