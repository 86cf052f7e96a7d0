from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_host: str = "localhost"
    db_port: int = 5432
    db_database: str = "manifest_db"
    db_username: str = "postgres"
    db_password: str = ""
    db_sslmode: str = "prefer"
    db_pool_min_size: int = 1
    db_pool_max_size: int = 10
    db_pool_timeout_seconds: float = 30.0

    pdf_engine: str = "pdfplumber"

    extraction_provider: str = "openai"
    extraction_openai_api_key: str = ""
    extraction_openai_model_name: str = ""
    extraction_openai_timeout_seconds: int = 60
    extraction_openai_temperature: float = 0.0
    extraction_openai_compatible_base_url: str = ""
    extraction_openai_compatible_api_key: str = ""
    extraction_openai_compatible_model_name: str = ""

    store_in_db: bool = True
    max_upload_size_bytes: int = 50 * 1024 * 1024
    batch_poll_interval_seconds: float = 1.0
