from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from docuchat.utils.logging import logger


class Settings(BaseSettings):
    database_url: str
    openai_api_key: str
    jwt_secret: str
    jwt_algo: str = "HS256"
    jwt_expire_minutes: int = 7 * 24 * 60

    # Job queue (rq over redis)
    redis_url: str = "redis://localhost:6379/0"
    queue_name: str = "file-upload-queue"
    worker_concurrency: int = 5
    ingest_max_retries: int = 3
    ingest_retry_intervals: List[int] = [10, 30, 60]
    job_timeout: int = 600
    result_ttl: int = 3600
    failure_ttl: int = 7 * 24 * 3600

    # Chunking / retrieval
    chunk_size: int = 1000
    chunk_overlap: int = 200
    top_k: int = 5
    history_limit: int = 10
    prompt_history: int = 6

    # Models
    embedding_backend: str = "openai"
    embedding_model: str = "text-embedding-3-small"
    local_embedding_model: str = "BAAI/bge-base-en-v1.5"
    embedding_dim: int = 1536
    chat_model: str = "gpt-4o-mini"
    chat_temperature: float = 0.3
    chat_max_tokens: int = 2048

    # Blob storage / downloads
    blob_dir: str = "uploads"
    public_base_url: str = "http://localhost:8000"
    max_upload_bytes: int = 10 * 1024 * 1024
    download_timeout: float = 60.0
    temp_dir: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # ignore any truly extra env vars
    )


settings = Settings()
logger.info("Settings loaded successfully from environment/.env")
