import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _resolve_database_url() -> str:
    database_url = os.getenv("DATABASE_URL")
    if database_url:
        return database_url

    environment = os.getenv("ENVIRONMENT", "").strip().lower()
    if environment == "development":
        return "postgresql+psycopg://localhost:5434/docvault"

    raise ValueError(
        "DATABASE_URL is not set. Set DATABASE_URL for non-development "
        "environments or set ENVIRONMENT=development for local defaults."
    )


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    database_url: str = _resolve_database_url()
    db_pool_size: int = int(os.getenv("DB_POOL_SIZE", "5"))
    db_max_overflow: int = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    db_pool_timeout: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    db_pool_recycle: int = int(os.getenv("DB_POOL_RECYCLE", "1800"))

    # Celery
    celery_broker_url: str = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    celery_result_backend: str = os.getenv(
        "CELERY_RESULT_BACKEND", "redis://localhost:6379/1"
    )
    presence_sweep_interval_seconds: int = int(
        os.getenv("PRESENCE_SWEEP_INTERVAL_SECONDS", "300")
    )
    case_reconcile_interval_seconds: int = int(
        os.getenv("CASE_RECONCILE_INTERVAL_SECONDS", "3600")
    )

    # Presence
    presence_liveness_seconds: int = int(os.getenv("PRESENCE_LIVENESS_SECONDS", "30"))

    # Audit
    audit_default_limit: int = int(os.getenv("AUDIT_DEFAULT_LIMIT", "100"))
    audit_max_limit: int = int(os.getenv("AUDIT_MAX_LIMIT", "500"))

    # Documents
    version_cas_retries: int = int(os.getenv("VERSION_CAS_RETRIES", "3"))
    share_token_bytes: int = int(os.getenv("SHARE_TOKEN_BYTES", "32"))
    enforce_document_quota: bool = _env_bool("ENFORCE_DOCUMENT_QUOTA", "true")

    # Cases
    case_max_documents: int = int(os.getenv("CASE_MAX_DOCUMENTS", "30"))
    case_max_bytes: int = int(
        os.getenv("CASE_MAX_BYTES", str(50 * 1024 * 1024))
    )  # 50MB

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_json: bool = _env_bool("LOG_JSON", "false")

    # Branding
    brand_name: str = os.getenv("BRAND_NAME", "DocVault")
    brand_tagline: str = os.getenv("BRAND_TAGLINE", "Collaborative document workspace")


settings = Settings()
