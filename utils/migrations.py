"""Helpers shared by the Alembic revisions under ``migrations/versions``.

Flask-Migrate owns the revision chain and the ``alembic_version`` ledger.
The revisions inspect the live schema before acting, so a database that was
created by an older release, or fresh by the baseline, ends at the same
schema.

Tables whose CHECK constraints have to change are rebuilt: a shadow table
is created from the current model, rows are copied across through value
normalisation, the old table is dropped, and the shadow is renamed into
place. The rebuild runs inside the revision's transaction; on SQLite the
migration environment switches foreign keys off around the whole upgrade.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from alembic import command
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from flask import current_app
from sqlalchemy import MetaData, Table, case, func, inspect, insert, select, update
from sqlalchemy.engine import Connection
from sqlalchemy.schema import CreateTable, DropTable

from models import COMPLAINT_STATUSES, PRIORITY_LEVELS, USER_ROLES, WORKFLOW_STATUSES
from utils.errors import MigrationError

logger = logging.getLogger(__name__)

SHADOW_SUFFIX = "__rebuild"
_QUOTED_VALUE = re.compile(r"'([^']*)'")


@dataclass(frozen=True)
class ValueNormalizer:
    """Maps stored values of one enumerated column onto its legal set."""

    column: str
    allowed: tuple[str, ...]
    default: str
    aliases: Dict[str, str] = field(default_factory=dict)

    def expression(self, column):
        whens = [(column == legacy, current) for legacy, current in self.aliases.items()]
        whens.append((column.in_(self.allowed), column))
        return case(*whens, else_=self.default)


@dataclass(frozen=True)
class FillMissing:
    column: str
    default: str

    def expression(self, column):
        return func.coalesce(column, self.default)


STATUS_NORMALIZER = ValueNormalizer(
    "status",
    WORKFLOW_STATUSES,
    "submitted",
    {
        "under_review": "assigned",
        "awaiting_confirmation": "in_progress",
        "closed": "resolved",
        "escalated": "reopened",
    },
)
PRIORITY_NORMALIZER = ValueNormalizer("priority", PRIORITY_LEVELS, "medium", {"urgent": "high"})
COMPLAINT_STATUS_NORMALIZER = ValueNormalizer("complaint_status", COMPLAINT_STATUSES, "pending")
ROLE_NORMALIZER = ValueNormalizer("role", USER_ROLES, "citizen")

GRIEVANCE_NORMALIZERS = (
    STATUS_NORMALIZER,
    PRIORITY_NORMALIZER,
    COMPLAINT_STATUS_NORMALIZER,
    FillMissing("title", "Untitled complaint"),
    FillMissing("location", ""),
)
USER_NORMALIZERS = (ROLE_NORMALIZER,)


# ---------------------------------------------------------------------------
# Inspection helpers
# ---------------------------------------------------------------------------


def existing_columns(conn: Connection, table_name: str) -> set[str]:
    return {column["name"] for column in inspect(conn).get_columns(table_name)}


def existing_indexes(conn: Connection, table_name: str) -> set[str]:
    return {index["name"] for index in inspect(conn).get_indexes(table_name)}


def allowed_values(conn: Connection, table_name: str, column: str) -> Optional[set[str]]:
    """Return the value set a CHECK constraint allows for ``column``, if any."""
    try:
        constraints = inspect(conn).get_check_constraints(table_name)
    except NotImplementedError:
        return None
    pattern = re.compile(rf"\b{re.escape(column)}\b\s+IN\s*\(([^)]*)\)", re.IGNORECASE)
    for constraint in constraints:
        match = pattern.search(constraint.get("sqltext") or "")
        if match:
            return set(_QUOTED_VALUE.findall(match.group(1)))
    return None


def constraints_match(conn: Connection, table_name: str, expected: Dict[str, Iterable[str]]) -> bool:
    return all(allowed_values(conn, table_name, column) == set(values) for column, values in expected.items())


# ---------------------------------------------------------------------------
# Rebuild machinery
# ---------------------------------------------------------------------------


def _shadow_table(table: Table) -> Table:
    shadow_metadata = MetaData()
    for other in table.metadata.sorted_tables:
        if other is not table:
            other.to_metadata(shadow_metadata)
    return table.to_metadata(shadow_metadata, name=f"{table.name}{SHADOW_SUFFIX}")


def rebuild_table(conn: Connection, table: Table, normalizers: Iterable = ()) -> int:
    """Recreate ``table`` from its model definition, keeping its rows.

    Runs in the caller's transaction. Returns the number of rows copied.
    """
    if conn.dialect.name == "sqlite" and conn.exec_driver_sql("PRAGMA foreign_keys").scalar():
        # Dropping a referenced table with enforcement on deletes or rejects its children.
        raise MigrationError(f"Rebuilding {table.name} needs SQLite foreign keys switched off")

    by_column = {normalizer.column: normalizer for normalizer in normalizers}
    shadow = _shadow_table(table)
    legacy = Table(table.name, MetaData(), autoload_with=conn)
    shared = [column.name for column in table.columns if column.name in legacy.c]
    selected = [
        by_column[name].expression(legacy.c[name]).label(name) if name in by_column else legacy.c[name]
        for name in shared
    ]
    conn.execute(CreateTable(shadow))
    copied = conn.execute(insert(shadow).from_select(shared, select(*selected))).rowcount
    conn.execute(DropTable(legacy))
    conn.exec_driver_sql(f'ALTER TABLE "{shadow.name}" RENAME TO "{table.name}"')
    for index in table.indexes:
        index.create(conn, checkfirst=True)
    logger.info("Table rebuilt", extra={"table": table.name, "rows": copied, "columns": len(shared)})
    return copied


def normalize_values(conn: Connection, table: Table, normalizers: Iterable) -> None:
    present = existing_columns(conn, table.name)
    values = {
        normalizer.column: normalizer.expression(table.c[normalizer.column])
        for normalizer in normalizers
        if normalizer.column in present
    }
    if values:
        # Keep onupdate columns such as updated_at as stored.
        values.update(
            {column.name: column for column in table.columns if column.onupdate is not None and column.name in present}
        )
        conn.execute(update(table).values(values))


# ---------------------------------------------------------------------------
# Running the chain
# ---------------------------------------------------------------------------


def current_revision(conn: Connection) -> Optional[str]:
    return MigrationContext.configure(conn).get_current_revision()


def revision_chain(script: ScriptDirectory, head: Optional[str]) -> List[str]:
    """Revision ids from the first revision up to ``head``, oldest first."""
    if head is None:
        return []
    return [revision.revision for revision in reversed(list(script.walk_revisions("base", head)))]


def apply_migrations(revision: str = "head") -> List[str]:
    """Upgrade the application database. Returns the revisions applied by this call.

    Needs an application context with Flask-Migrate initialised. Failures
    are raised as MigrationError; the failing revision is rolled back and the
    ledger stays at the last revision that completed.
    """
    migrate = current_app.extensions["migrate"]
    config = migrate.migrate.get_config()
    script = ScriptDirectory.from_config(config)
    engine = migrate.db.engine

    with engine.connect() as conn:
        before = current_revision(conn)
    try:
        command.upgrade(config, revision)
    except Exception as exc:
        with engine.connect() as conn:
            reached = current_revision(conn)
        logger.error("Migration failed", extra={"revision": reached or "base", "error": str(exc)})
        raise MigrationError(f"Upgrade stopped after revision {reached or 'base'}: {exc}") from exc
    with engine.connect() as conn:
        after = current_revision(conn)

    applied = revision_chain(script, after)[len(revision_chain(script, before)):]
    if applied:
        logger.info("Schema up to date", extra={"applied": applied, "revision": after})
    return applied
