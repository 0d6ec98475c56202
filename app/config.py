import logging
import sys
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App config
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 3001

    # WebSocket config
    WS_HEARTBEAT_INTERVAL: int = 30
    WS_CONNECTION_TIMEOUT: int = 120

    # Relay-side chaos triggers
    ROLE_SWAP_THRESHOLD: int = 2
    ROLE_SWAP_PROBABILITY: float = 0.5

    # Relay client (peer side)
    RELAY_URL: str = "ws://localhost:3001/api/v1/ws"
    RELAY_CONNECT_TIMEOUT: float = 5.0
    RELAY_RECONNECT_ATTEMPTS: int = 5
    RELAY_RECONNECT_DELAY: float = 1.0
    RELAY_RECONNECT_DELAY_MAX: float = 5.0

    @field_validator("ROLE_SWAP_THRESHOLD", "RELAY_RECONNECT_ATTEMPTS")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("ROLE_SWAP_PROBABILITY")
    @classmethod
    def validate_probability(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("ROLE_SWAP_PROBABILITY must be between 0 and 1")
        return v

    @field_validator("RELAY_URL")
    @classmethod
    def validate_relay_url(cls, v: str) -> str:
        if not v.startswith(("ws://", "wss://")):
            raise ValueError("RELAY_URL must be a ws:// or wss:// URL")
        return v


# Libraries whose INFO output drowns out the relay's own
QUIET_LOGGERS = ("websockets", "uvicorn.access", "httpx")


def configure_logging(debug: bool = False) -> None:
    """Send application logs to stdout, at DEBUG when ``debug`` is set."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)-7s [%(name)s] %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    configure_logging(settings.DEBUG)
    logger.info(
        "Settings loaded: port=%d, role swap after %d moves at p=%.2f",
        settings.PORT,
        settings.ROLE_SWAP_THRESHOLD,
        settings.ROLE_SWAP_PROBABILITY,
    )
    return settings
