"""users: allow the contractor role

Revision ID: 0002
Revises: 0001
Create Date: 2024-03-18 10:30:00

"""
from alembic import op

from models import USER_ROLES, User
from utils.migrations import USER_NORMALIZERS, constraints_match, normalize_values, rebuild_table


# revision identifiers, used by Alembic.
revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade():
    conn = op.get_bind()
    users = User.__table__
    if not constraints_match(conn, users.name, {"role": USER_ROLES}):
        rebuild_table(conn, users, USER_NORMALIZERS)
    normalize_values(conn, users, USER_NORMALIZERS)


def downgrade():
    raise NotImplementedError("Contractor accounts do not fit the older role constraint")
