import json
from typing import List, Union
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_PRODUCTION_ENVS = {"prod", "production"}


def _split_origins(raw: str) -> List[str]:
    """Accept a JSON list or a comma-separated string."""
    if raw.startswith("["):
        parsed = json.loads(raw)
        if not isinstance(parsed, list):
            raise ValueError("CORS_ORIGINS JSON value must be a list")
        items = parsed
    else:
        items = raw.split(",")
    return [str(item).strip() for item in items if str(item).strip()]


class Settings(BaseSettings):
    app_name: str = "Pharmacy Inventory Backend"
    env: str = "dev"

    # DATABASE
    database_url: str
    db_pool_size: int = Field(default=10, ge=1, le=100)
    db_max_overflow: int = Field(default=20, ge=0, le=200)
    db_pool_timeout_seconds: int = Field(default=30, ge=1, le=300)
    db_pool_recycle_seconds: int = Field(default=1800, ge=30, le=86_400)

    # INVENTORY
    history_limit: int = Field(default=500, ge=1, le=5000)
    expiry_red_days: int = Field(default=90, ge=1)
    expiry_yellow_days: int = Field(default=180, ge=1)
    pdf_rows_per_page: int = Field(default=60, ge=10, le=66)  # 66 lines fill an A4 page at 8pt

    api_timeout_hint_ms: int = Field(default=300000, ge=1000, le=1_800_000)

    # CORS
    cors_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:3000"]
    )
    cors_origin_regex: str | None = None

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Union[str, List[str], None]) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return _split_origins(v.strip())
        if isinstance(v, list):
            return [str(i).strip() for i in v if str(i).strip()]
        raise ValueError(v)

    @field_validator("cors_origin_regex", mode="before")
    @classmethod
    def blank_regex_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return str(value).strip() or None

    @property
    def is_production(self) -> bool:
        return self.env.lower().strip() in _PRODUCTION_ENVS

    @model_validator(mode="after")
    def check_settings(self) -> "Settings":
        if self.expiry_yellow_days <= self.expiry_red_days:
            raise ValueError("EXPIRY_YELLOW_DAYS must be greater than EXPIRY_RED_DAYS")

        if self.is_production:
            if "*" in self.cors_origins:
                raise ValueError("CORS_ORIGINS cannot contain '*' in production")
            if self.cors_origin_regex:
                raise ValueError("CORS_ORIGIN_REGEX cannot be set in production")
            if self.database_url.lower().startswith("sqlite"):
                raise ValueError("DATABASE_URL must point to a networked database in production")
        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        enable_decoding=False,
    )


settings = Settings()
