"""
ESP Relay Backend API Middleware

HTTP 요청 컨텍스트(요청 ID, 처리 시간) 및 에러 핸들링.
WebSocket 연결은 이 미들웨어를 거치지 않습니다.
"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from ..core.logging import bind_context, clear_context, get_logger

logger = get_logger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """요청 ID 바인딩과 요청 로깅.

    X-Request-ID 헤더가 있으면 그대로 쓰고, 없으면 UUID를 생성합니다.
    응답 헤더에 X-Request-ID 와 X-Process-Time 을 추가합니다.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        bind_context(request_id=request_id)
        request.state.request_id = request_id
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        finally:
            process_time = (time.perf_counter() - start_time) * 1000

        log_level = "warning" if response.status_code >= 400 else "debug"
        getattr(logger, log_level)(
            "요청 완료",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            process_time_ms=round(process_time, 2),
        )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{process_time:.2f}ms"
        clear_context()
        return response


def _error_body(request: Request, code: int, message) -> dict:
    return {
        "error": {
            "code": code,
            "message": message,
            "request_id": getattr(request.state, "request_id", None),
        }
    }


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """HTTP 예외 핸들러. 모든 에러를 같은 형식으로 반환합니다."""
    if isinstance(exc, HTTPException):
        logger.warning(
            "HTTP 예외",
            status_code=exc.status_code,
            detail=exc.detail,
            path=request.url.path,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(request, exc.status_code, exc.detail),
        )

    logger.error(
        "처리되지 않은 예외",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content=_error_body(request, 500, "Internal Server Error"),
    )
