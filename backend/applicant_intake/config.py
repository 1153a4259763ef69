import logging
import logging.handlers
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = ""
    host: str = "0.0.0.0"
    port: int = 3000

    # Blob store
    upload_dir: str = "uploads"
    uploads_mount: str = "/uploads"
    allowed_resume_extensions: str = ""  # e.g. ".pdf,.docx"; empty = any
    max_resume_bytes: int = 0  # 0 = unlimited

    # HTTP
    cors_origins: str = "*"
    trusted_hosts: str = "*"
    rate_limit: str = "60/minute"
    rate_limit_enabled: bool = True

    # Database
    auto_migrate: bool = True
    db_pool_size: int = 5
    db_max_overflow: int = 10

    # Logging
    configure_logging: bool = True
    log_level: str = "INFO"
    log_dir: str = "logs"
    log_to_file: bool = True
    log_max_bytes: int = 10_485_760  # 10 MB
    log_backup_count: int = 5

    model_config = {"env_file": ".env", "extra": "ignore"}

    @property
    def effective_database_url(self) -> str:
        """Database URL with the legacy ``postgres://`` scheme rewritten for SQLAlchemy."""
        if self.database_url.startswith("postgres://"):
            return "postgresql://" + self.database_url[len("postgres://") :]
        return self.database_url

    @property
    def cors_origins_list(self) -> list[str]:
        return _split_csv(self.cors_origins)

    @property
    def trusted_hosts_list(self) -> list[str]:
        return _split_csv(self.trusted_hosts)

    @property
    def allowed_resume_extensions_list(self) -> list[str]:
        exts = []
        for ext in _split_csv(self.allowed_resume_extensions):
            ext = ext.lower()
            exts.append(ext if ext.startswith(".") else f".{ext}")
        return exts


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def setup_logging(settings: Settings) -> None:
    """Configure application-wide logging with rotating file handlers.

    Creates up to three handlers:
    - Console: INFO+ with brief format (for container logs)
    - app.log: DEBUG+ with detailed format, rotated at LOG_MAX_BYTES x LOG_BACKUP_COUNT
    - error.log: ERROR+ only, same rotation

    File handlers are skipped when ``log_to_file`` is off.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    # --- Console handler (brief, for stdout) ---
    console = logging.StreamHandler()
    console.setLevel(logging.INFO)
    console.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    ))
    root.addHandler(console)

    if settings.log_to_file:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        detail_fmt = logging.Formatter(
            "%(asctime)s %(levelname)-8s [%(name)s:%(funcName)s:%(lineno)d] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        # --- Rotating file handler (detailed, all levels) ---
        app_handler = logging.handlers.RotatingFileHandler(
            log_dir / "app.log",
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
            encoding="utf-8",
        )
        app_handler.setLevel(logging.DEBUG)
        app_handler.setFormatter(detail_fmt)
        root.addHandler(app_handler)

        # --- Rotating error-only file handler ---
        err_handler = logging.handlers.RotatingFileHandler(
            log_dir / "error.log",
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
            encoding="utf-8",
        )
        err_handler.setLevel(logging.ERROR)
        err_handler.setFormatter(detail_fmt)
        root.addHandler(err_handler)

    # --- Quiet noisy third-party loggers ---
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("multipart").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured: level=%s, file=%s, dir=%s, max=%s MB x %d backup",
        settings.log_level,
        settings.log_to_file,
        settings.log_dir,
        settings.log_max_bytes // 1_048_576,
        settings.log_backup_count,
    )
