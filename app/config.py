import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class Settings(BaseModel):
    app_name: str = Field(default=os.getenv("APP_NAME", "Back Office"))

    # Logging
    log_level: str = Field(default=os.getenv("LOG_LEVEL", "INFO"))
    log_format: str = Field(
        default=os.getenv(
            "LOG_FORMAT", "%(asctime)s %(levelname)s [%(name)s] %(message)s"
        )
    )

    # Resource tables
    default_page_size: int = Field(default=int(os.getenv("DEFAULT_PAGE_SIZE", "10")))
    max_page_size: int = Field(default=int(os.getenv("MAX_PAGE_SIZE", "200")))
    seed_sample_data: bool = Field(default=_env_bool("SEED_SAMPLE_DATA", "true"))

    # Remote resource backend; empty means the in-memory backend is used
    resource_api_base_url: str = Field(default=os.getenv("RESOURCE_API_BASE_URL", ""))
    resource_api_timeout: float = Field(
        default=float(os.getenv("RESOURCE_API_TIMEOUT", "30"))
    )
    resource_api_token: Optional[str] = Field(default=os.getenv("RESOURCE_API_TOKEN"))

    # Admin session; unset disables the login check for local development
    admin_session_token: Optional[str] = Field(default=os.getenv("ADMIN_SESSION_TOKEN"))
    secure_cookies: bool = Field(default=_env_bool("SECURE_COOKIES", "true"))

    # Display defaults
    display_date_format: str = Field(default=os.getenv("DISPLAY_DATE_FORMAT", "MM/DD/YYYY"))
    display_time_format: str = Field(default=os.getenv("DISPLAY_TIME_FORMAT", "24h"))
    display_number_format: str = Field(default=os.getenv("DISPLAY_NUMBER_FORMAT", "comma"))
    display_currency_symbol: str = Field(default=os.getenv("DISPLAY_CURRENCY_SYMBOL", "$"))
    display_currency_code: str = Field(default=os.getenv("DISPLAY_CURRENCY_CODE", "USD"))
    display_show_currency_code: bool = Field(
        default=_env_bool("DISPLAY_SHOW_CURRENCY_CODE", "false")
    )
    display_decimal_places: int = Field(default=int(os.getenv("DISPLAY_DECIMAL_PLACES", "2")))
    display_table_density: str = Field(
        default=os.getenv("DISPLAY_TABLE_DENSITY", "comfortable")
    )

    @field_validator("default_page_size", "max_page_size", mode="after")
    @classmethod
    def validate_page_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("page sizes must be positive")
        return v

    @field_validator("resource_api_base_url", mode="after")
    @classmethod
    def strip_base_url(cls, v: str) -> str:
        return v.strip().rstrip("/")

    class Config:
        frozen = True


settings = Settings()
