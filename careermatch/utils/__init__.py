"""
Utility modules for careermatch.

This package contains shared utilities used across the application:
- config: Configuration management
- logger: Logging infrastructure
- constants: Application-wide constants and enums
- exceptions: Error taxonomy
"""

from careermatch.utils.config import (
    AppSettings,
    get_settings,
    reload_settings,
    settings,
    ROOT_DIR,
    PACKAGE_DIR,
    DATA_DIR,
)
from careermatch.utils.constants import (
    EMBEDDING_DIMENSIONS,
    EntityType,
    TaskType,
    MatchStatus,
    ImprovementType,
    ProgressStage,
)
from careermatch.utils.exceptions import (
    CareerMatchError,
    InitializationError,
    EmbeddingError,
    ProfileUnavailableError,
    RetrievalDegraded,
    ScoringError,
)
from careermatch.utils.logger import (
    setup_logging,
    get_logger,
)

__all__ = [
    # Config
    "AppSettings",
    "get_settings",
    "reload_settings",
    "settings",
    "ROOT_DIR",
    "PACKAGE_DIR",
    "DATA_DIR",
    # Constants
    "EMBEDDING_DIMENSIONS",
    "EntityType",
    "TaskType",
    "MatchStatus",
    "ImprovementType",
    "ProgressStage",
    # Exceptions
    "CareerMatchError",
    "InitializationError",
    "EmbeddingError",
    "ProfileUnavailableError",
    "RetrievalDegraded",
    "ScoringError",
    # Logger
    "setup_logging",
    "get_logger",
]
