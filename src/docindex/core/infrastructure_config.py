"""
Infrastructure Configuration

Settings shared by the indexer and the retrieval engine.
Contains the index database path and worker/storage tuning.
"""

import os
from enum import Enum
from pathlib import Path


class Environment(str, Enum):
    """Application environment"""

    PRODUCTION = "production"
    DEVELOPMENT = "development"
    TEST = "test"


def _get_environment() -> Environment:
    """Get and validate ENVIRONMENT variable."""
    env_value = os.getenv("ENVIRONMENT")
    if env_value is None:
        raise RuntimeError(
            "ENVIRONMENT is required. Set to 'production', 'development', or 'test'."
        )
    try:
        return Environment(env_value.lower())
    except ValueError:
        raise RuntimeError(
            f"Invalid ENVIRONMENT value: '{env_value}'. "
            "Must be 'production', 'development', or 'test'."
        )


class InfrastructureSettings:
    """Infrastructure-level configuration (index database, concurrency)"""

    # Project Paths
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent.parent
    DATA_DIR: Path = BASE_DIR / "data"

    # Index database (SQLite)
    DB_PATH: str = os.getenv("INDEX_DB", str(DATA_DIR / "index.db"))
    STORE_BUSY_TIMEOUT_SEC: float = float(os.getenv("STORE_BUSY_TIMEOUT_SEC", "30"))
    STORE_WRITE_ATTEMPTS: int = int(os.getenv("STORE_WRITE_ATTEMPTS", "5"))

    # Ingestion
    INDEXER_WORKERS: int = int(os.getenv("INDEXER_WORKERS", "8"))
    STAGING_SHARDS: int = int(os.getenv("STAGING_SHARDS", "16"))

    # Retrieval
    SEARCH_RESULT_LIMIT: int = int(os.getenv("SEARCH_RESULT_LIMIT", "50"))

    # Environment
    ENVIRONMENT: Environment = _get_environment()


settings = InfrastructureSettings()
