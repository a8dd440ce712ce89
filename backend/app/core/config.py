from pathlib import Path

from pydantic_settings import BaseSettings

# Application version - single source of truth
APP_VERSION = "0.3.0"

# Base directory for path calculations
_base_dir = Path(__file__).resolve().parent.parent.parent.parent


class Settings(BaseSettings):
    app_name: str = "Spoolbook"
    debug: bool = False  # Default to production mode

    # Paths
    base_dir: Path = _base_dir
    data_dir: Path = base_dir / "data"
    static_dir: Path = base_dir / "static"
    log_dir: Path = base_dir / "logs"
    database_url: str = f"sqlite+aiosqlite:///{_base_dir / 'spoolbook.db'}"

    # Logging
    log_level: str = "INFO"  # Override with LOG_LEVEL env var or DEBUG=true
    log_to_file: bool = True  # Set to false to disable file logging

    # API
    api_prefix: str = "/api"
    jwt_secret_key: str | None = None

    # Ledger
    low_filament_threshold: float = 200.0  # grams, alert at or below
    ledger_timeout_seconds: float = 10.0
    db_busy_timeout_seconds: float = 5.0  # SQLite lock wait before "database is locked"

    # Low-stock alert channels (all optional)
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_pass: str | None = None
    alert_email: str | None = None
    low_stock_webhook_url: str | None = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()

# Ensure directories exist
settings.static_dir.mkdir(exist_ok=True)
if settings.log_to_file:
    settings.log_dir.mkdir(exist_ok=True)
