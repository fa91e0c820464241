"""
Service settings, read from the environment and an optional .env file.
"""

from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Values in the project .env win over whatever the shell exported
load_dotenv(override=True)


class Settings(BaseSettings):
    """Runtime settings for the recommender service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Providers ─────────────────────────────────
    openai_api_key: str = ""
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 768
    llm_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.1

    # ── Item store ────────────────────────────────
    chroma_persist_dir: str = "./data/chroma_db"
    chroma_collection_name: str = "items"

    # ── Catalog import source ─────────────────────
    database_url: str = "sqlite:///./data/catalog.db"

    # ── Recommendation defaults ───────────────────
    top_n: int = 5
    sim_threshold: float = 0.25

    # ── Server ────────────────────────────────────
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    log_level: str = "info"

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        if value.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return value.lower()

    def ensure_directories(self) -> None:
        """Create the Chroma persistence directory."""
        Path(self.chroma_persist_dir).mkdir(parents=True, exist_ok=True)


settings = Settings()
