"""Shared Flask extension singletons to avoid circular imports."""
import sqlite3

from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

# Initialize extensions without app; app_factory will bind them.
db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()


@event.listens_for(Engine, "connect")
def _configure_sqlite_connection(dbapi_connection, connection_record):
    if isinstance(dbapi_connection, sqlite3.Connection):
        # The driver would only BEGIN before DML; SQLAlchemy emits BEGIN itself
        # so DDL in a migration rolls back with the rest of it.
        dbapi_connection.isolation_level = None
        # SQLite ships with referential integrity off per connection.
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@event.listens_for(Engine, "begin")
def _begin_sqlite_transaction(conn):
    if conn.dialect.name == "sqlite":
        conn.exec_driver_sql("BEGIN")
