"""One email_logs row per (user, nudge kind).

Revision ID: 002_email_logs_one_per_nudge
Revises: 001_initial_schema
Create Date: 2025-12-03

Databases created before the model declared the constraint can hold
duplicate nudge rows from overlapping sweeps. Keep the earliest row of each
(user_id, email_type) pair, then add the unique index.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "002_email_logs_one_per_nudge"
down_revision: Union[str, None] = "001_initial_schema"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()
    conn.execute(
        sa.text(
            """
            DELETE FROM email_logs a
            USING email_logs b
            WHERE a.user_id = b.user_id
              AND a.email_type = b.email_type
              AND (a.sent_at > b.sent_at OR (a.sent_at = b.sent_at AND a.id > b.id));
            """
        )
    )
    conn.execute(
        sa.text(
            """
            CREATE UNIQUE INDEX IF NOT EXISTS uq_email_logs_user_type
            ON email_logs (user_id, email_type);
            """
        )
    )


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS uq_email_logs_user_type")
