"""
ESP Relay Backend Application Entry Point

FastAPI 애플리케이션 인스턴스 및 라우터 등록.

Usage:
    esp-relay

    또는

    uvicorn esprelay.backend.main:app --port 10000
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from starlette.exceptions import HTTPException

from .api.middleware import RequestContextMiddleware, http_exception_handler
from .api.routes import health_router, sensor_router, websocket_router
from .core.config import settings
from .core.logging import get_logger, setup_logging
from .services.hub import RelayHub
from .services.liveness import PING_INTERVAL

# 로깅 초기화
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """애플리케이션 생명주기 관리.

    시작 시:
        - RelayHub 생성 및 생존 감시(sweep/ping) 시작

    종료 시:
        - 주기 작업 취소 및 연결 정리
    """
    logger.info("애플리케이션 시작", app_name=settings.APP_NAME, version=settings.APP_VERSION)

    hub = RelayHub()
    await hub.start()
    app.state.hub = hub

    yield

    await hub.stop()
    app.state.hub = None
    logger.info("애플리케이션 종료")


def create_app() -> FastAPI:
    """FastAPI 애플리케이션을 생성합니다."""
    application = FastAPI(
        title=settings.APP_NAME,
        description="Relay between an ESP8266 distance sensor and dashboard clients",
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )

    application.add_middleware(RequestContextMiddleware)

    application.add_exception_handler(HTTPException, http_exception_handler)
    application.add_exception_handler(Exception, http_exception_handler)

    application.include_router(health_router)
    application.include_router(sensor_router)
    application.include_router(websocket_router)
    return application


app = create_app()


def main() -> None:
    """콘솔 진입점. PORT 환경변수(기본 10000)로 서버를 띄웁니다."""
    logger.info("서버 시작", host=settings.HOST, port=settings.PORT)
    uvicorn.run(
        app,
        host=settings.HOST,
        port=settings.PORT,
        # 전송 계층 ping 도 앱 keepalive 와 같은 주기로
        ws_ping_interval=PING_INTERVAL,
        log_config=None,  # setup_logging() 설정 유지
    )


if __name__ == "__main__":
    main()
