"""Application configuration via environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # App
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:5000",
        "http://localhost:8000",
    ]

    # Azure Blob Storage: posts and uploaded media live in separate containers
    azure_storage_account: str = "blogcmsstorage"
    azure_posts_container: str = "posts"
    azure_media_container: str = "uploads"

    # Local development (Azurite); takes precedence over managed identity
    azure_storage_connection_string: str = ""

    # Azure User-Assigned Managed Identity
    managed_identity_client_id: str = ""

    # Uploads
    max_upload_bytes: int = 5 * 1024 * 1024

    model_config = {"env_file": ".env", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
