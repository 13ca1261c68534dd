"""grievances: reporter, contractor and resolution columns

Revision ID: 0003
Revises: 0002
Create Date: 2024-04-02 16:15:00

Also adds users.phone and the category description and department.
"""
from alembic import op
import sqlalchemy as sa

from utils.migrations import existing_columns, existing_indexes


# revision identifiers, used by Alembic.
revision = "0003"
down_revision = "0002"
branch_labels = None
depends_on = None


def new_columns():
    return {
        "grievances": [
            sa.Column("reporter_name", sa.String(length=150), nullable=True),
            sa.Column("reporter_email", sa.String(length=255), nullable=True),
            sa.Column("reporter_mobile", sa.String(length=20), nullable=True),
            sa.Column("assigned_department", sa.String(length=255), nullable=True),
            sa.Column("latitude", sa.Float(), nullable=True),
            sa.Column("longitude", sa.Float(), nullable=True),
            sa.Column("images_json", sa.Text(), nullable=True),
            sa.Column("complaint_status", sa.String(length=20), nullable=True, server_default="pending"),
            sa.Column("resolution_image_url", sa.String(length=500), nullable=True),
            sa.Column("resolution_notes", sa.Text(), nullable=True),
            sa.Column("contractor_id", sa.Integer(), nullable=True),
            sa.Column("citizen_rating", sa.Integer(), nullable=True),
            sa.Column("citizen_feedback", sa.Text(), nullable=True),
            sa.Column("resolved_at", sa.DateTime(), nullable=True),
        ],
        "users": [
            sa.Column("phone", sa.String(length=30), nullable=True),
        ],
        "grievance_categories": [
            sa.Column("description", sa.String(length=255), nullable=True),
            sa.Column("department", sa.String(length=255), nullable=True),
        ],
    }


def upgrade():
    conn = op.get_bind()
    for table_name, columns in new_columns().items():
        present = existing_columns(conn, table_name)
        for column in columns:
            if column.name not in present:
                op.add_column(table_name, column)
    if "ix_grievances_contractor_id" not in existing_indexes(conn, "grievances"):
        op.create_index("ix_grievances_contractor_id", "grievances", ["contractor_id"], unique=False)


def downgrade():
    raise NotImplementedError("Older releases may already have had some of these columns")
