"""
Configuration settings for the HomeQuote application
"""
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "HomeQuote API"
    version: str = "1.0.0"
    environment: str = "development"
    debug: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///./homequote.db"
    database_pool_size: int = 10
    database_max_overflow: int = 20

    # CORS
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:8000",
        "http://127.0.0.1:8000",
    ]

    # OpenAI
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_vision_model: str = "gpt-4o"
    openai_max_tokens: int = 1500
    openai_temperature: float = 0.0

    # LLM collaborators (all optional, deterministic fallbacks otherwise)
    use_llm_intent: bool = False
    use_llm_summary: bool = False
    use_llm_essentials: bool = False
    use_llm_floorplan: bool = False
    llm_timeout_seconds: float = 20.0
    llm_max_retries: int = 2

    # Catalog
    catalog_timeout_seconds: float = 10.0
    catalog_query_limit: int = 100

    # Selection / alternatives
    selection_concurrency: int = 8
    alternatives_page_size: int = 3
    replace_lookup_limit: int = 10

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"
    log_dir: str = "logs"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Allow extra fields from .env


# Global settings instance
settings = Settings()
