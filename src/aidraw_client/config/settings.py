"""Application settings."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "aidraw-client"
    # Binds every adapter to the remote REST backend instead of local storage.
    use_backend: bool = False
    api_base_url: str = ""
    api_timeout_s: float = Field(default=30.0, gt=0.0)
    storage_path: str = "~/.aidraw/state.sqlite3"
    poll_max_attempts: int = Field(default=30, ge=1)
    poll_interval_s: float = Field(default=2.0, ge=0.0)
    default_page_size: int = Field(default=12, ge=1)
    image_base_url: str = "https://image.pollinations.ai/prompt"
    text_base_url: str = "https://text.pollinations.ai"
    default_model: str = "flux"
    default_width: int = Field(default=1024, ge=64)
    default_height: int = Field(default=1024, ge=64)
    credits_per_image: int = Field(default=1, ge=0)
    local_initial_credits: int = Field(default=0, ge=0)

    model_config = SettingsConfigDict(
        env_prefix="AIDRAW_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_storage_path(self) -> Path:
        return Path(self.storage_path).expanduser()

    def resolved_api_base_url(self) -> str:
        return self.api_base_url.strip().rstrip("/")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
