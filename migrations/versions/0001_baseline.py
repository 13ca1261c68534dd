"""baseline: create the tables of the current model

Revision ID: 0001
Revises:
Create Date: 2024-03-04 09:00:00

Tables that already exist are left as they are; the later revisions bring
databases from older releases up to date.
"""
from alembic import op

from extensions import db
import models  # noqa: F401  registers the tables on db.metadata


# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    db.metadata.create_all(op.get_bind(), checkfirst=True)


def downgrade():
    db.metadata.drop_all(op.get_bind())
