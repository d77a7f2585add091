"""
Application configuration
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "Cordova App Generator"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True
    USER_AGENT: str = "Cordova-App-Generator/1.0.0"

    # Persistence: "file", "mongo" or "memory"
    STORAGE_BACKEND: str = "file"
    STORAGE_DIR: str = "./data"
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DB_NAME: str = "cordova_generator"
    MONGODB_COLLECTION: str = "kv_store"

    # Event relay (optional)
    REDIS_URL: Optional[str] = None

    # Logging: "text" or "json"
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "text"

    # HTTP
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # GitHub
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_REQUIRED_SCOPES: List[str] = ["repo", "public_repo"]
    GITHUB_AUTO_ENABLE_PAGES: bool = True
    GITHUB_PAGES_CHECK_INTERVAL_SECONDS: float = 30.0
    GITHUB_PAGES_MAX_CHECKS: int = 10

    # Upload retry
    UPLOAD_MAX_ATTEMPTS: int = 3
    UPLOAD_BACKOFF_BASE_SECONDS: float = 1.0
    UPLOAD_BACKOFF_MAX_SECONDS: float = 5.0
    UPLOAD_BATCH_SIZE: int = 10
    UPLOAD_BATCH_PAUSE_SECONDS: float = 1.0

    # Codemagic
    CODEMAGIC_API_URL: str = "https://api.codemagic.io"
    CODEMAGIC_APP_URL: str = "https://codemagic.io/app"
    CODEMAGIC_DEFAULT_WORKFLOW: str = "cordova_android_build"
    CODEMAGIC_DEFAULT_BRANCH: str = "main"

    # Build status tracking
    BUILD_HISTORY_KEY: str = "cordova-generator-build-history"
    BUILD_HISTORY_LIMIT: int = 100
    BUILD_EXPIRATION_DAYS: int = 30
    BUILD_POLL_INTERVAL_SECONDS: float = 45.0
    BUILD_POLL_MAX_ATTEMPTS: int = 120

    # Amazon Appstore
    AMAZON_APPSTORE_API_URL: str = "https://developer.amazon.com/api/appstore/v1"
    AMAZON_TOKEN_REFRESH_MARGIN_SECONDS: int = 60

    # Templates / configuration document
    TEMPLATES_KEY: str = "cordova-generator-custom-templates"
    TEMPLATE_USAGE_KEY: str = "cordova-generator-template-usage"
    CONFIG_FILE_PATH: str = "./data/cordova-generator-config.json"
    CONFIG_DOCUMENT_VERSION: str = "1.0.0"

    # Generation
    MAX_APPS_PER_SESSION: int = 10

    # API
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8080"]

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
