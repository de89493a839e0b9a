"""Configuration management using Pydantic Settings"""

from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import AliasChoices, Field, field_validator
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings with validation"""

    # Application
    app_name: str = "IoT Sensor Manager"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"
    json_logs: bool = True

    # Database
    database_url: str = "sqlite+aiosqlite:///./sensors.db"
    db_pool_size: int = 10
    db_pool_max_overflow: int = 20

    # Node-RED
    node_red_base_url: str = Field(
        default="http://localhost:1880",
        validation_alias=AliasChoices("node_red_base_url", "node_red_url"),
    )
    node_red_timeout: float = 10.0
    node_red_health_timeout: float = 2.0
    node_red_api_token: Optional[str] = None

    # Flow deployment retry on stale revision
    flow_deploy_max_attempts: int = 3
    flow_deploy_backoff_base: float = 0.2

    # MQTT
    mqtt_default_port: int = 1883
    mqtt_tls_port: int = 8883
    mqtt_ws_port: int = 8000
    mqtt_ws_path: str = "/mqtt"
    mqtt_timeout_ms: int = 5000

    # CORS
    cors_origins_str: str = Field(
        default="",
        alias="cors_origins",
        description="Comma-separated list of allowed CORS origins",
    )

    @property
    def cors_origins(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]

    @field_validator('node_red_base_url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip('/')

    @field_validator('flow_deploy_max_attempts')
    @classmethod
    def at_least_one_attempt(cls, v: int) -> int:
        if v < 1:
            raise ValueError("flow_deploy_max_attempts must be >= 1")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = False
        populate_by_name = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
