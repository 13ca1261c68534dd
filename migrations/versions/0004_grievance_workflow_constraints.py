"""grievances: current status, priority and complaint status constraints

Revision ID: 0004
Revises: 0003
Create Date: 2024-04-22 11:45:00

Rows keep their data; legacy values are mapped onto the current sets and
complaints that were resolved before resolved_at existed get it backfilled.
"""
from alembic import op
import sqlalchemy as sa

from models import COMPLAINT_STATUSES, PRIORITY_LEVELS, WORKFLOW_STATUSES, Grievance
from utils.migrations import GRIEVANCE_NORMALIZERS, constraints_match, normalize_values, rebuild_table


# revision identifiers, used by Alembic.
revision = "0004"
down_revision = "0003"
branch_labels = None
depends_on = None


def upgrade():
    conn = op.get_bind()
    grievances = Grievance.__table__
    expected = {
        "status": WORKFLOW_STATUSES,
        "priority": PRIORITY_LEVELS,
        "complaint_status": COMPLAINT_STATUSES,
    }
    if not constraints_match(conn, grievances.name, expected):
        rebuild_table(conn, grievances, GRIEVANCE_NORMALIZERS)
    normalize_values(conn, grievances, GRIEVANCE_NORMALIZERS)
    op.execute(
        sa.update(grievances)
        .where(grievances.c.resolved_at.is_(None), grievances.c.status.in_(("resolved", "reopened")))
        .values(
            resolved_at=sa.func.coalesce(grievances.c.updated_at, grievances.c.created_at),
            updated_at=grievances.c.updated_at,
        )
    )


def downgrade():
    raise NotImplementedError("Legacy status values are not kept after normalisation")
