"""Flask application factory for the municipal grievance service."""
import os
from typing import Mapping, Optional

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from sqlalchemy import create_engine, text
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import OperationalError
from werkzeug.exceptions import HTTPException

from extensions import db, login_manager, migrate
from utils.classifier import KeywordClassifier
from utils.errors import AuthenticationError, GrievanceError, MigrationError
from utils.logger import init_logging
from utils.migrations import apply_migrations
from utils.security import apply_security_headers
from utils.seed import seed_reference_data
from utils.session_store import bearer_token, build_session_store, get_session_store

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "migrations")


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(GrievanceError)
    def grievance_error(error: GrievanceError):
        log = app.logger.error if error.status_code >= 500 else app.logger.warning
        log(
            "Request rejected",
            extra={"path": request.path, "method": request.method, "status": error.status_code, "reason": error.message},
        )
        return jsonify(error.payload()), error.status_code

    @app.errorhandler(HTTPException)
    def http_error(error: HTTPException):
        app.logger.warning(
            f"{error.code} {error.name}", extra={"path": request.path, "method": request.method}
        )
        return jsonify({"error": error.description or error.name}), error.code

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.exception("500 Internal Server Error")
        return jsonify({"error": "Internal server error"}), 500


def ensure_database_exists(database_uri: str) -> None:
    """Create the target database if it does not exist (PostgreSQL + SQLite support)."""
    url = make_url(database_uri)

    if url.drivername.startswith("sqlite"):
        # For SQLite just make sure the parent directory exists.
        if url.database and url.database != ":memory:":
            os.makedirs(os.path.dirname(url.database) or ".", exist_ok=True)
        return

    if url.drivername.startswith("postgres"):
        db_name = url.database
        admin_url = url.set(database=os.getenv("POSTGRES_DB_ADMIN", "postgres"))
        engine = create_engine(admin_url, isolation_level="AUTOCOMMIT")
        try:
            with engine.connect() as conn:
                exists = conn.execute(
                    text("SELECT 1 FROM pg_database WHERE datname = :name"), {"name": db_name}
                ).scalar()
                if not exists:
                    conn.execute(text(f'CREATE DATABASE "{db_name}"'))
        except OperationalError:
            # If we cannot connect/create, let the normal app startup fail loudly later.
            pass
        finally:
            engine.dispose()


def prepare_database(app: Flask) -> None:
    """Upgrade the schema to the newest revision and seed reference data.

    Raises MigrationError when a revision fails.
    """
    with app.app_context():
        try:
            applied = apply_migrations()
        except MigrationError:
            app.logger.critical("Schema migration failed; refusing to start")
            raise
        if applied:
            app.logger.info("Migrations applied", extra={"versions": applied})
        seed_reference_data(app.config)


def create_app(config_name: Optional[str] = None, overrides: Optional[Mapping] = None) -> Flask:
    """Application factory with environment-aware configuration."""
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)

    # Resolve configuration
    from config import DevelopmentConfig, ProductionConfig, TestingConfig

    config_key = (config_name or os.getenv("FLASK_CONFIG") or os.getenv("FLASK_ENV") or "production").lower()
    config_map = {
        "development": DevelopmentConfig,
        "dev": DevelopmentConfig,
        "production": ProductionConfig,
        "prod": ProductionConfig,
        "testing": TestingConfig,
        "test": TestingConfig,
    }
    config_class = config_map.get(config_key, ProductionConfig)
    app.config.from_object(config_class())
    if overrides:
        app.config.update(overrides)

    ensure_database_exists(app.config["SQLALCHEMY_DATABASE_URI"])
    os.makedirs(app.instance_path, exist_ok=True)
    os.makedirs(app.config["UPLOAD_FOLDER"], exist_ok=True)

    # Initialize logging early
    logger = init_logging(app)
    app.logger = logger

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db, directory=MIGRATIONS_DIR, transaction_per_migration=True)
    login_manager.init_app(app)
    # Bearer tokens only; no cookie session to protect.
    login_manager.session_protection = None
    app.extensions["session_store"] = build_session_store(app.config.get("SESSION_STORE"))
    app.extensions["classifier"] = KeywordClassifier()

    @login_manager.request_loader
    def load_user_from_request(req):
        from models import User  # Local import to avoid circular dependency

        token = bearer_token(req)
        if not token:
            return None
        user_id = get_session_store().get(token)
        if user_id is None:
            return None
        return db.session.get(User, user_id)

    @login_manager.unauthorized_handler
    def unauthorized():
        app.logger.info("Unauthenticated request", extra={"path": request.path, "method": request.method})
        raise AuthenticationError()

    # Blueprints
    from routes import auth_bp, authority_bp, contractor_bp, grievances_bp, main_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(grievances_bp, url_prefix="/api")
    app.register_blueprint(authority_bp, url_prefix="/api/authority")
    app.register_blueprint(contractor_bp, url_prefix="/api/contractor")

    # Error handlers
    register_error_handlers(app)

    @app.after_request
    def _after_request(response):
        return apply_security_headers(response, force_https=app.config.get("PREFERRED_URL_SCHEME") == "https")

    prepare_database(app)

    return app


if __name__ == "__main__":
    port = int(os.getenv("PORT", 5000))
    create_app().run(host="0.0.0.0", port=port, use_reloader=False)
