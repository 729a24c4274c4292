"""Application configuration via environment variables."""

from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Workflow engine (n8n)
    workflow_webhook_url: str = "http://n8n:5678/webhook-test/upload-pdf"
    workflow_timeout_seconds: float = 600.0  # Docling extraction can be slow
    public_callback_url: str = "http://frontend:3000/api/webhook/updates"

    # Live update stream
    stream_poll_interval_seconds: float = 0.5
    stream_timeout_seconds: float = 3600.0

    # Execution registry
    registry_ttl_seconds: float = 3600.0
    registry_sweep_interval_seconds: float = 60.0
    accept_unknown_executions: bool = False

    # Uploads
    max_upload_bytes: int = 50 * 1024 * 1024

    # Server
    port: int = 3000
    log_level: str = "INFO"
    cors_origins: List[str] = ["http://localhost:3000"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
