"""
Configuration management for careermatch.

Uses Pydantic Settings for type-safe configuration with environment variable support.
"""

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Base paths
ROOT_DIR = Path(__file__).parent.parent.parent
PACKAGE_DIR = ROOT_DIR / "careermatch"
DATA_DIR = ROOT_DIR / "data"


class EmbeddingSettings(BaseSettings):
    """Text-embedding model configuration."""

    model_config = SettingsConfigDict(env_prefix="EMBEDDING_")

    model_name: str = "sentence-transformers/all-MiniLM-L6-v2"
    dimension: int = 384

    # Context budget of the model; longer text is truncated, not rejected
    max_tokens: int = 512
    chars_per_token: int = 3

    device: Literal["cpu", "cuda", "mps", "auto"] = "auto"
    cache_folder: Optional[Path] = DATA_DIR / "models"

    @field_validator("device")
    @classmethod
    def validate_device(cls, v: str) -> str:
        """Auto-detect device if set to auto."""
        if v == "auto":
            try:
                import torch

                if torch.cuda.is_available():
                    return "cuda"
                elif torch.backends.mps.is_available():
                    return "mps"
            except ImportError:
                pass
            return "cpu"
        return v

    @property
    def max_chars(self) -> int:
        """Character budget derived from the token budget."""
        return self.max_tokens * self.chars_per_token


class ScoringSettings(BaseSettings):
    """
    Match scoring configuration.

    The similarity band is empirical and specific to the embedding model;
    recalibrate it whenever ``EMBEDDING_MODEL_NAME`` changes.
    """

    model_config = SettingsConfigDict(env_prefix="SCORING_")

    min_similarity: float = 0.30
    max_similarity: float = 0.65
    min_score: int = 40
    max_score: int = 95

    requirements_weight: float = 0.6
    min_requirements_length: int = 100

    @field_validator("requirements_weight")
    @classmethod
    def validate_weight(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("requirements_weight must be between 0 and 1")
        return v

    @model_validator(mode="after")
    def validate_bands(self) -> "ScoringSettings":
        if self.min_similarity >= self.max_similarity:
            raise ValueError("min_similarity must be lower than max_similarity")
        if self.min_score >= self.max_score:
            raise ValueError("min_score must be lower than max_score")
        return self


class RetrievalSettings(BaseSettings):
    """Multi-query context retrieval configuration."""

    model_config = SettingsConfigDict(env_prefix="RETRIEVAL_")

    max_stories: int = 8
    max_documents: int = 3
    threshold: float = 0.35
    limit_per_query: int = 3
    fallback_query_chars: int = 500

    # Single-query context retrieval (stories, Q&A history, documents)
    context_max_stories: int = 3
    context_max_qa: int = 5
    context_max_documents: int = 2


class ImprovementSettings(BaseSettings):
    """Resume improvement mining configuration."""

    model_config = SettingsConfigDict(env_prefix="IMPROVEMENTS_")

    max_results: int = 10
    job_window: int = 5
    min_change_length: int = 15
    near_duplicate_ceiling: float = 0.9
    min_length_ratio: float = 0.7
    skill_length_ratio: float = 1.2
    dedupe_ceiling: float = 0.7


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: str = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"
    file_path: Path = ROOT_DIR / "logs" / "careermatch.log"
    file_output: bool = True
    rotation: str = "10 MB"
    retention: str = "30 days"
    console_output: bool = True


class AppSettings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application metadata
    name: str = "careermatch"
    version: str = "0.1.0"
    description: str = "Semantic matching and context retrieval for job seekers"
    debug: bool = False

    # Environment
    environment: Literal["development", "production", "testing"] = "development"

    # Nested settings
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    retrieval: RetrievalSettings = Field(default_factory=RetrievalSettings)
    improvements: ImprovementSettings = Field(default_factory=ImprovementSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# Global settings instance (singleton pattern)
_settings: AppSettings | None = None


def get_settings() -> AppSettings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings


def reload_settings() -> AppSettings:
    """Force reload settings from environment."""
    global _settings
    _settings = AppSettings()
    return _settings


# Convenience exports
settings = get_settings()
