import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _database_url() -> str:
    url = os.getenv("DATABASE_URL", "") or "sqlite:///./data.sqlite3"
    # Hosted Postgres often hands out postgres://, SQLAlchemy wants a driver name
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+psycopg://", 1)
    return url


@dataclass(frozen=True)
class Settings:
    database_url: str = _database_url()
    redis_url: str = os.getenv("REDIS_URL", "")
    search_api_endpoint: str = os.getenv("SEARCH_API_ENDPOINT", "https://www.googleapis.com/customsearch/v1")
    check_timeout_seconds: float = float(os.getenv("CHECK_TIMEOUT_SECONDS", "15"))
    check_max_retries: int = int(os.getenv("CHECK_MAX_RETRIES", "3"))
    check_result_count: int = int(os.getenv("CHECK_RESULT_COUNT", "3"))
    queue_concurrency: int = int(os.getenv("QUEUE_CONCURRENCY", "3"))
    queue_name: str = os.getenv("QUEUE_NAME", "index-check")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    max_urls_per_request: int = int(os.getenv("MAX_URLS_PER_REQUEST", "10000"))
    max_urls_per_campaign: int = int(os.getenv("MAX_URLS_PER_CAMPAIGN", "50000"))

settings = Settings()
