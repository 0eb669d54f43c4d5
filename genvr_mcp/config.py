from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

DATA_DIR = Path(__file__).parent / "data"

DEFAULT_CATEGORY_ALIASES = {
    "image": "imagegen",
    "video": "videogen",
    "audio": "audiogen",
}

DEFAULT_CANONICAL_CATEGORIES = ["imagegen", "videogen", "audiogen", "textgen", "3dgen"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="allow",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # --- GenVR API ---
    genvr_api_base: str = Field(default="https://api.genvrresearch.com/api/v1", validation_alias="GENVR_API_BASE")
    genvr_user_id: Optional[str] = Field(default=None, validation_alias="GENVR_USER_ID")
    genvr_access_token: Optional[str] = Field(default=None, validation_alias="GENVR_ACCESS_TOKEN")
    request_timeout: float = Field(default=30.0, validation_alias="REQUEST_TIMEOUT")

    # --- Task polling ---
    poll_max_attempts: int = Field(default=60, validation_alias="GENVR_POLL_MAX_ATTEMPTS")
    poll_base_delay_ms: int = Field(default=2000, validation_alias="GENVR_POLL_BASE_DELAY_MS")
    poll_backoff_factor: float = Field(default=1.5, validation_alias="GENVR_POLL_BACKOFF_FACTOR")
    poll_max_delay_ms: int = Field(default=10000, validation_alias="GENVR_POLL_MAX_DELAY_MS")

    # --- Catalog / tool surface ---
    catalog_path: Path = Field(default=DATA_DIR / "curated-models.json", validation_alias="GENVR_CATALOG_PATH")
    schemas_path: Path = Field(default=DATA_DIR / "schemas-cache.json", validation_alias="GENVR_SCHEMAS_PATH")
    tool_prefix: str = Field(default="generate_", validation_alias="GENVR_TOOL_PREFIX")
    category_aliases: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_CATEGORY_ALIASES),
        validation_alias="GENVR_CATEGORY_ALIASES",
    )
    canonical_categories: str = Field(
        default=",".join(DEFAULT_CANONICAL_CATEGORIES),
        validation_alias="GENVR_CANONICAL_CATEGORIES",
    )

    # --- Server ---
    mcp_server_name: str = Field(default="genvr-mcp-server", validation_alias="MCP_SERVER_NAME")
    mcp_server_version: str = Field(default="1.0.0", validation_alias="MCP_SERVER_VERSION")
    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=8787, validation_alias="PORT")
    cors_allowed_origins: str = Field(default="", validation_alias="CORS_ALLOWED_ORIGINS")

    # --- Logging ---
    debug: bool = Field(default=False, validation_alias="DEBUG")
    log_dir: Optional[Path] = Field(default=None, validation_alias="GENVR_LOG_DIR")

    def canonical_category_set(self) -> List[str]:
        """Canonical categories: the configured list plus every alias target."""
        names = [c.strip() for c in self.canonical_categories.split(",") if c.strip()]
        for target in self.category_aliases.values():
            if target not in names:
                names.append(target)
        return names


@lru_cache
def get_settings() -> Settings:
    return Settings()
