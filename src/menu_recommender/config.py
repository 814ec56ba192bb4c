"""
Configuration for the menu recommender.

All settings are environment driven via pydantic-settings. Each concern has
its own settings class with a dedicated env prefix; the root ``Settings``
object nests them and is exported as the module-level ``settings``.
"""

from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class FalkorDBSettings(BaseSettings):
    """Connection settings for the FalkorDB graph store."""

    model_config = SettingsConfigDict(env_prefix="MENU_FALKORDB_", extra="ignore")

    host: str = "localhost"
    port: int = Field(default=6379, ge=1, le=65535)
    password: SecretStr | None = None
    graph_name: str = "menu_graph"
    max_connections: int = Field(default=16, ge=1)


class RecommendationSettings(BaseSettings):
    """Tunables for the scoring strategies and the hybrid combiner."""

    model_config = SettingsConfigDict(env_prefix="MENU_RECOMMEND_", extra="ignore")

    # Window used by the trend strategy when the caller gives none (or a bad one)
    trend_window_days: int = Field(default=7, ge=1)
    # Users with fewer recorded orders than this are classified as new
    new_user_order_threshold: int = Field(default=3, ge=1)
    # Top-N applied by callers of the hybrid combiner
    hybrid_limit: int = Field(default=10, ge=1)
    # Rows per UNWIND batch when writing derived edges
    rebuild_batch_size: int = Field(default=500, ge=1)
    # Seconds before the store-wide aggregation lock expires if its holder dies
    aggregation_lock_timeout: float = Field(default=600.0, gt=0)
    # Seconds a rebuild or order apply waits for a competing holder
    aggregation_lock_wait: float = Field(default=60.0, ge=0)


class ImportSettings(BaseSettings):
    """CSV import settings."""

    model_config = SettingsConfigDict(env_prefix="MENU_IMPORT_", extra="ignore")

    data_dir: Path = Path("data")
    clear_existing: bool = True
    rebuild_after_import: bool = True


class HTTPSettings(BaseSettings):
    """HTTP server settings."""

    model_config = SettingsConfigDict(env_prefix="MENU_HTTP_", extra="ignore")

    host: str = "0.0.0.0"
    port: int = Field(default=8080, ge=1, le=65535)
    # Comma separated list of allowed CORS origins
    cors_origins: str = "*"


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(extra="ignore")

    falkordb: FalkorDBSettings = Field(default_factory=FalkorDBSettings)
    recommend: RecommendationSettings = Field(default_factory=RecommendationSettings)
    importer: ImportSettings = Field(default_factory=ImportSettings)
    http: HTTPSettings = Field(default_factory=HTTPSettings)


settings = Settings()
