from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional
from pydantic import field_validator

class Settings(BaseSettings):
    # Database settings
    POSTGRES_USER: str = 'restobar_user'
    POSTGRES_PASSWORD: str = 'restobar_pass'
    POSTGRES_DB: str = 'restobar_db'
    POSTGRES_HOST: str = 'postgres'
    POSTGRES_PORT: int = 5432
    # Overrides the POSTGRES_* url (sqlite in tests, managed instances, etc.)
    DATABASE_URL: Optional[str] = None

    # Business settings
    LOCAL_CURRENCY_CODE: str = 'NIO'
    DEFAULT_SALES_WAREHOUSE_CODE: Optional[str] = None
    DEFAULT_PRICE_LIST_CODE: str = 'BASE'
    BUSINESS_UTC_OFFSET_HOURS: int = -6  # America/Managua, sin horario de verano
    RETAIL_MODE_ENABLED: bool = False

    # Pagination
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def default_sales_warehouse_code(self) -> Optional[str]:
        code = (self.DEFAULT_SALES_WAREHOUSE_CODE or "").strip().upper()
        return code or None

    model_config = SettingsConfigDict(
        extra="allow",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @field_validator("DEBUG", mode="before")
    @classmethod
    def parse_debug(cls, v):
        if isinstance(v, str):
            return v.lower().strip('"').strip("'") in ("true", "1", "yes", "on")
        return bool(v)

    @field_validator("RETAIL_MODE_ENABLED", mode="before")
    @classmethod
    def parse_retail_mode(cls, v):
        if isinstance(v, str):
            return v.lower().strip('"').strip("'") in ("true", "1", "yes", "on")
        return bool(v)

    @field_validator("LOCAL_CURRENCY_CODE", mode="before")
    @classmethod
    def parse_currency(cls, v):
        if isinstance(v, str):
            return v.strip().upper() or 'NIO'
        return v

settings = Settings()
