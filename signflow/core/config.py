from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import validator


class Settings(BaseSettings):
    PROJECT_NAME: str = "Signflow"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/api/v1"

    # Persistence backends: "memory" keeps everything in process
    ENTITY_STORE: str = "memory"
    BLOB_STORE: str = "memory"

    # MongoDB (only used when ENTITY_STORE == "mongo")
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DB_NAME: str = "signflow"

    # Document Storage
    DOCUMENT_STORAGE_PATH: str = "./storage/documents"
    MAX_DOCUMENT_SIZE_MB: int = 20

    # Default placement of a SIMPLE (image) signature
    VISUAL_DEFAULT_PAGE: int = 0
    VISUAL_DEFAULT_X: float = 100.0
    VISUAL_DEFAULT_Y: float = 100.0
    VISUAL_DEFAULT_WIDTH: float = 150.0
    VISUAL_DEFAULT_HEIGHT: float = 50.0

    # Default placement of the stamp drawn next to a certificate signature
    CERTIFICATE_DEFAULT_PAGE: int = 0
    CERTIFICATE_DEFAULT_X: float = 100.0
    CERTIFICATE_DEFAULT_Y: float = 100.0
    CERTIFICATE_DEFAULT_WIDTH: float = 200.0
    CERTIFICATE_DEFAULT_HEIGHT: float = 80.0

    # Cryptography
    SIGNING_DIGEST_ALGORITHM: str = "sha256"

    # Notifications
    NOTIFICATION_WEBHOOK_URL: Optional[str] = None
    NOTIFICATION_TIMEOUT_SECONDS: float = 5.0
    SIGNING_BASE_URL: str = "http://localhost:8000/sign"

    # Logging
    LOG_LEVEL: str = "INFO"
    GRAYLOG_HOST: Optional[str] = None
    GRAYLOG_PORT: int = 12201

    @validator('ENTITY_STORE')
    def check_entity_store(cls, v):
        if v not in ("memory", "mongo"):
            raise ValueError("ENTITY_STORE must be 'memory' or 'mongo'")
        return v

    @validator('BLOB_STORE')
    def check_blob_store(cls, v):
        if v not in ("memory", "filesystem"):
            raise ValueError("BLOB_STORE must be 'memory' or 'filesystem'")
        return v

    @validator('SIGNING_DIGEST_ALGORITHM')
    def check_digest(cls, v):
        v = v.lower()
        if v not in {"sha256", "sha384", "sha512"}:
            raise ValueError(f"Unsupported digest algorithm: {v}")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
