"""
Runtime settings, read from the environment and an optional .env file
"""
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    ENVIRONMENT: str = Field(default="development")
    LOG_LEVEL: str = Field(default="INFO")

    # Auth is skipped when no key is configured
    API_KEY: Optional[str] = Field(default=None)

    # Memory store when unset
    DATABASE_URL: Optional[str] = Field(default=None)

    RENDER_TIMEOUT_MS: int = Field(default=120000)
    CONTENT_LOAD_TIMEOUT_MS: int = Field(default=30000)
    CHROMIUM_EXECUTABLE_PATH: Optional[str] = Field(default=None)

    # Document header
    COMPANY_NAME: str = "Fromagerie Alioui"
    COMPANY_ADDRESS: str = "Zhena, Utique Bizerte"
    COMPANY_PHONE: str = "98136638"
    COMPANY_MF: str = "1798066/G"
    COMPANY_LOGO_URL: Optional[str] = "https://i.ibb.co/ZzzzhdRN/LOGO1.png"
    DELIVERY_LABEL: str = "laamiri omar"
    OPERATOR_LABEL: str = "Alioui Assil"

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        v = v.lower()
        if v not in ("development", "production", "test"):
            raise ValueError("ENVIRONMENT must be development, production or test")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT == "development"

    model_config = {
        "env_file": ".env",
        "case_sensitive": True,
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    load_dotenv(".env")
    return Settings()
