import os
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Anthropic API
    ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")
    ANTHROPIC_MODEL: str = "claude-sonnet-4-5"
    LLM_MAX_TOKENS: int = 4000
    LLM_TIMEOUT_SECONDS: float = 120.0

    # Batching / routing defaults
    DEFAULT_BATCH_SIZE: int = 5
    DEFAULT_DOCUMENT_TYPE: str = "MBL"

    # Storage locations (each extraction request gets its own subdirectory of TEMP_IMAGES_DIR)
    UPLOAD_DIR: str = "uploads"
    TEMP_IMAGES_DIR: str = "temp_images"
    PDF_RASTER_DPI: int = 200

    # Upload limits
    MAX_UPLOAD_BYTES: int = 50 * 1024 * 1024
    MAX_UPLOAD_FILES: int = 50
    ALLOWED_UPLOAD_EXTENSIONS: list[str] = [".pdf", ".png", ".jpg", ".jpeg", ".gif", ".webp"]

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()
