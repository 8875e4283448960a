"""
ESP Relay Backend Logging Configuration

structlog 기반 구조화된 로깅 설정.
LOG_FORMAT=json 이면 한 줄 JSON, console 이면 개발용 컬러 출력.
uvicorn 로그도 같은 포맷터를 거칩니다.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import Processor

from .config import settings


def _shared_processors() -> list[Processor]:
    """structlog 로그와 stdlib 로그가 공통으로 거치는 프로세서."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer() -> Processor:
    if settings.is_json_logging:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=True,
        exception_formatter=structlog.dev.plain_traceback,
    )


def setup_logging() -> None:
    """애플리케이션 로깅을 초기화합니다.

    환경변수:
        LOG_LEVEL: 로깅 레벨 (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        LOG_FORMAT: 출력 형식 (json, console)
    """
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    shared = _shared_processors()

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(),
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    logging.getLogger("uvicorn").setLevel(log_level)
    logging.getLogger("uvicorn.error").setLevel(log_level)
    # 헬스체크 폴링으로 access 로그가 넘치지 않도록
    logging.getLogger("uvicorn.access").setLevel(
        logging.DEBUG if settings.DEBUG else logging.WARNING
    )
    # websockets 프로토콜 디버그 로그는 너무 많음
    logging.getLogger("websockets").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """모듈 로거를 반환합니다.

    Example:
        logger = get_logger(__name__)
        logger.info("장치 연결됨", conn_id="3f2a...")
    """
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """현재 태스크 컨텍스트에 값을 바인딩합니다.

    WebSocket 핸들러는 conn_id 를, HTTP 미들웨어는 request_id 를 바인딩하며
    이후 같은 태스크의 모든 로그에 포함됩니다.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """바인딩된 컨텍스트를 모두 지웁니다."""
    structlog.contextvars.clear_contextvars()
