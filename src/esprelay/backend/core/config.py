"""
ESP Relay Backend Configuration

pydantic-settings 기반 환경변수 관리.
모든 설정은 .env 파일 또는 환경변수로 오버라이드 가능.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Application
    # ==========================================================================
    APP_NAME: str = "ESP Relay Backend"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # ==========================================================================
    # Server
    # ==========================================================================
    HOST: str = "0.0.0.0"
    PORT: int = 10000  # 호스팅 환경이 PORT를 주입함

    # ==========================================================================
    # WebSocket
    # ==========================================================================
    OUTBOX_SIZE: int = 100  # 연결별 송신 큐 크기 (가득 차면 메시지 폐기)

    # ==========================================================================
    # Logging
    # ==========================================================================
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    LOG_FORMAT: str = "json"  # json 또는 console

    @property
    def is_json_logging(self) -> bool:
        """JSON 로그 출력 여부."""
        return self.LOG_FORMAT.lower() == "json"


# 싱글톤 인스턴스
settings = Settings()
