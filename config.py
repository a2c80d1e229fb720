from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):
    # MongoDB Configuration
    mongo_url: str = "mongodb://localhost:27017"
    db_name: str = "invoiceflow"
    # Multi-document transactions need a replica set
    mongo_transactions: bool = True

    # Application Configuration
    frontend_url: str = "http://localhost:5173"
    environment: str = "development"

    # JWT Configuration
    jwt_secret_key: str = "your-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expiration_minutes: int = 60 * 24 * 7  # 7 days

    # Document numbering
    number_generation_max_attempts: int = 10000
    counter_conflict_retries: int = 50

    # Document defaults
    default_tax_rate: float = 11
    default_tax_name: str = "PPN"
    quotation_valid_days: int = 30
    invoice_due_days: int = 14

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    class Config:
        env_file = ".env"
        case_sensitive = False

@lru_cache()
def get_settings():
    return Settings()
