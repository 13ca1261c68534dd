"""Environment-aware configuration for the Flask application."""
import os
import tempfile


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class BaseConfig:
    def __init__(self) -> None:
        # Defaults for local dev: SQLite db and a non-empty secret. Override via env for production.
        self.SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-me")
        db_url = os.getenv("DATABASE_URL")
        if db_url:
            self.SQLALCHEMY_DATABASE_URI = db_url
        else:
            self.SQLALCHEMY_DATABASE_URI = os.getenv(
                "SQLITE_URL",
                f"sqlite:///{os.path.join(os.getcwd(), 'instance', 'grievance.db')}",
            )
        self.SQLALCHEMY_TRACK_MODIFICATIONS = False
        self.SQLALCHEMY_ENGINE_OPTIONS = {
            "pool_pre_ping": True,
            "pool_recycle": int(os.getenv("DB_POOL_RECYCLE", 1800)),
        }
        self.PREFERRED_URL_SCHEME = os.getenv("PREFERRED_URL_SCHEME", "https")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.LOG_DIR = os.getenv("LOG_DIR", os.path.join(os.getcwd(), "logs"))
        self.UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", os.path.join(os.getcwd(), "uploads"))
        self.MAX_IMAGE_UPLOAD_BYTES = int(os.getenv("MAX_IMAGE_UPLOAD_BYTES", 5 * 1024 * 1024))
        self.MAX_COMPLAINT_PHOTOS = int(os.getenv("MAX_COMPLAINT_PHOTOS", 6))
        # Six photos at the per-image limit plus form fields.
        self.MAX_CONTENT_LENGTH = int(os.getenv("MAX_REQUEST_BYTES", 32 * 1024 * 1024))
        self.SESSION_STORE = os.getenv("SESSION_STORE", "database").lower()
        self.DEFAULT_ADMIN_EMAIL = os.getenv("DEFAULT_ADMIN_EMAIL", "admin@nagarseva.gov")
        self.DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD", "admin123")
        self.DEFAULT_ADMIN_NAME = os.getenv("DEFAULT_ADMIN_NAME", "Municipal Officer")
        self.SEED_DEMO_ACCOUNTS = _env_flag("SEED_DEMO_ACCOUNTS", "true")
        self.AUTHORITY_PAGE_SIZE = int(os.getenv("AUTHORITY_PAGE_SIZE", 20))
        self.PASSWORD_MIN_LENGTH = int(os.getenv("PASSWORD_MIN_LENGTH", 6))


class DevelopmentConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.DEBUG = True
        self.ENV = "development"
        self.PREFERRED_URL_SCHEME = "http"


class ProductionConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.DEBUG = False
        self.ENV = "production"
        self.SEED_DEMO_ACCOUNTS = _env_flag("SEED_DEMO_ACCOUNTS", "false")
        self.SEND_FILE_MAX_AGE_DEFAULT = 31536000


class TestingConfig(BaseConfig):
    def __init__(self, database_path: str | None = None) -> None:
        super().__init__()
        self.TESTING = True
        self.DEBUG = False
        self.ENV = "testing"
        scratch = tempfile.mkdtemp(prefix="grievance-test-")
        self.SQLALCHEMY_DATABASE_URI = f"sqlite:///{database_path or os.path.join(scratch, 'test.db')}"
        self.SQLALCHEMY_ENGINE_OPTIONS = {}
        self.UPLOAD_FOLDER = os.path.join(scratch, "uploads")
        self.LOG_DIR = os.path.join(scratch, "logs")
        self.LOG_LEVEL = "WARNING"
        self.SESSION_STORE = "memory"
        self.SEED_DEMO_ACCOUNTS = True
        self.PREFERRED_URL_SCHEME = "http"
