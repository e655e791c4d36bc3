from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # core
    ENV: str = "dev"
    API_PREFIX: str = "/api"
    SERVICE_NAME: str = "salesletter_backend"
    LOG_LEVEL: str = "INFO"

    # cache (optional; crawl results are recomputed when unset)
    REDIS_URL: str | None = None
    FACT_CACHE_TTL_SECONDS: int = 60 * 60 * 24

    # external APIs
    OPENROUTER_API_KEY: str | None = None
    OPENAI_API_KEY: str | None = None

    # auth / security
    FRONTEND_ORIGIN: str | None = None
    # Explicit debug-only switch for wide-open CORS in non-prod envs
    CORS_ALLOW_ALL_ORIGINS: bool = False

    # llm
    LLM_MODEL: str = "openai/gpt-4.1-mini"
    # Hard cap on concurrent LLM calls per process
    LLM_MAX_CONCURRENCY: int = 4
    DRAFT_TEMPERATURE: float = 0.7
    EXTRACT_TEMPERATURE: float = 0.1

    # crawler
    FETCH_TIMEOUT_SECONDS: float = 10.0
    FETCH_MAX_BYTES: int = 5 * 1024 * 1024
    FETCH_USER_AGENT: str = "Mozilla/5.0 (compatible; SalesLetterBot/1.0)"
    CRAWL_MAX_PAGES: int = 8
    ARTICLES_PER_LISTING: int = 2
    PAGE_TEXT_MAX_CHARS: int = 8000

    # quality gate / generation loop
    QUALITY_MIN_CHARS: int = 250
    QUALITY_MAX_CHARS: int = 650
    QUALITY_PASS_SCORE: int = 80
    GENERATION_MAX_ATTEMPTS: int = 2

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    return Settings()
