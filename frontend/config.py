from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", frozen=True)

    listen_addr: str = Field(default="", alias="LISTEN_ADDR")
    port: int = Field(default=8080, alias="PORT")
    base_url: str = Field(default="", alias="BASE_URL")

    enable_tracing: bool = Field(default=False, alias="ENABLE_TRACING")
    enable_profiler: bool = Field(default=False, alias="ENABLE_PROFILER")
    collector_service_addr: str = Field(default="localhost:4317", alias="COLLECTOR_SERVICE_ADDR")

    enable_single_shared_session: bool = Field(default=False, alias="ENABLE_SINGLE_SHARED_SESSION")
    enable_healthz: bool = Field(default=True, alias="ENABLE_HEALTHZ")

    service_name: str = Field(default="frontend", alias="SERVICE_NAME")
    service_version: str = Field(default="1.0.0", alias="SERVICE_VERSION")
    log_level: str = Field(default="DEBUG", alias="LOG_LEVEL")

    @field_validator("enable_tracing", "enable_profiler", mode="before")
    @classmethod
    def _flag_is_one(cls, value: object) -> object:
        # Feature toggles are on only when set to exactly "1".
        if isinstance(value, str):
            return value.strip() == "1"
        return value

    @field_validator("port", mode="before")
    @classmethod
    def _default_empty_port(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return 8080
        return value

    @property
    def bind_host(self) -> str:
        return self.listen_addr or "0.0.0.0"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
