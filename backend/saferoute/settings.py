from __future__ import annotations

from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_out_dir() -> str:
    # Keep logs and the local road store in backend/out by default.
    return str(Path(__file__).resolve().parents[1] / "out")


class Settings(BaseSettings):
    """Validated settings (env-driven), keeping config out of code for easy extension."""

    model_config = SettingsConfigDict(
        # Support both "repo root/.env" and "backend/.env" (local dev)
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    osrm_base_url: str = Field(default="https://router.project-osrm.org", alias="OSRM_BASE_URL")
    osrm_profile: str = Field(default="driving", alias="OSRM_PROFILE")
    osrm_timeout_s: float = Field(default=15.0, ge=1.0, le=120.0, alias="OSRM_TIMEOUT_S")
    osrm_max_retries: int = Field(default=3, ge=1, le=10, alias="OSRM_MAX_RETRIES")
    osrm_fallback_enabled: bool = Field(default=True, alias="OSRM_FALLBACK_ENABLED")

    open_meteo_url: str = Field(
        default="https://api.open-meteo.com/v1/forecast",
        alias="OPEN_METEO_URL",
    )
    weather_timeout_s: float = Field(default=10.0, ge=1.0, le=60.0, alias="WEATHER_TIMEOUT_S")

    out_dir: str = Field(default_factory=_default_out_dir, alias="OUT_DIR")
    road_store_dir: str = Field(default="", alias="ROAD_STORE_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    cors_allow_origins: str = Field(default="*", alias="CORS_ALLOW_ORIGINS")

    @model_validator(mode="after")
    def _normalise(self) -> "Settings":
        self.osrm_base_url = self.osrm_base_url.strip().rstrip("/") or "https://router.project-osrm.org"
        self.osrm_profile = self.osrm_profile.strip() or "driving"
        self.log_level = (self.log_level or "INFO").strip().upper()
        return self

    def resolved_road_store_dir(self) -> Path:
        if self.road_store_dir.strip():
            return Path(self.road_store_dir)
        return Path(self.out_dir) / "road_store"

    def cors_origins(self) -> list[str]:
        origins = [item.strip() for item in self.cors_allow_origins.split(",")]
        return [item for item in origins if item] or ["*"]


settings = Settings()
