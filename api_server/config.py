from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""
    INVOICES_TABLE: str = "invoices"

    API_HOST: str = "0.0.0.0"
    API_PORT: int = 3001
    ENVIRONMENT: str = "development"

    # CORS allow-list
    FRONTEND_URL: str = "http://localhost:5173"
    FRONTEND_PROD_URL: str = "https://qris-payvoicely.vercel.app"

    RATE_LIMIT: str = "100 per 15 minutes"
    RATE_LIMIT_ENABLED: bool = True

    # Base64 QR images make invoice bodies large
    MAX_BODY_BYTES: int = 10 * 1024 * 1024

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def allowed_origins(self) -> List[str]:
        return [self.FRONTEND_URL, self.FRONTEND_PROD_URL]


@lru_cache()
def get_settings() -> Settings:
    return Settings()
