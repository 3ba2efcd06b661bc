"""Create TrialRescue tables.

Revision ID: 001_initial_schema
Revises:
Create Date: 2025-11-20

Plain SQL guarded with IF NOT EXISTS: app startup runs Base.metadata.create_all
before migrations, so on a fresh database the tables may already exist.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()
    conn.execute(
        sa.text(
            """
            CREATE TABLE IF NOT EXISTS projects (
                id VARCHAR(36) PRIMARY KEY,
                name VARCHAR NOT NULL,
                api_key VARCHAR NOT NULL UNIQUE,
                owner_user_id VARCHAR,
                owner_email VARCHAR,
                billing_status VARCHAR NOT NULL DEFAULT 'inactive',
                billing_plan VARCHAR,
                billing_updated_at TIMESTAMPTZ,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            );
            """
        )
    )
    conn.execute(
        sa.text(
            """
            CREATE TABLE IF NOT EXISTS trial_settings (
                project_id VARCHAR(36) PRIMARY KEY REFERENCES projects (id) ON DELETE CASCADE,
                product_name VARCHAR,
                support_email VARCHAR,
                app_url VARCHAR,
                trial_length_days INTEGER NOT NULL DEFAULT 14,
                inactivity_days_nudge1 INTEGER NOT NULL DEFAULT 2,
                inactivity_days_nudge2 INTEGER NOT NULL DEFAULT 4,
                inactivity_days_nudge3 INTEGER NOT NULL DEFAULT 7,
                automation_enabled BOOLEAN NOT NULL DEFAULT true,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            );
            """
        )
    )
    conn.execute(
        sa.text(
            """
            CREATE TABLE IF NOT EXISTS project_users (
                id VARCHAR(36) PRIMARY KEY,
                project_id VARCHAR(36) NOT NULL REFERENCES projects (id) ON DELETE CASCADE,
                external_user_id VARCHAR NOT NULL,
                email VARCHAR,
                trial_started_at TIMESTAMPTZ,
                last_activity_at TIMESTAMPTZ,
                upgraded_at TIMESTAMPTZ,
                unsubscribed BOOLEAN NOT NULL DEFAULT false,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                CONSTRAINT uq_project_users_project_external UNIQUE (project_id, external_user_id)
            );
            """
        )
    )
    conn.execute(
        sa.text(
            """
            CREATE TABLE IF NOT EXISTS email_logs (
                id VARCHAR(36) PRIMARY KEY,
                project_id VARCHAR(36) NOT NULL REFERENCES projects (id) ON DELETE CASCADE,
                user_id VARCHAR(36) NOT NULL REFERENCES project_users (id) ON DELETE CASCADE,
                email_type VARCHAR NOT NULL,
                provider_message_id VARCHAR,
                sent_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            );
            """
        )
    )
    conn.execute(
        sa.text(
            """
            CREATE TABLE IF NOT EXISTS events (
                id VARCHAR(36) PRIMARY KEY,
                project_id VARCHAR(36) NOT NULL REFERENCES projects (id) ON DELETE CASCADE,
                user_id VARCHAR(36) REFERENCES project_users (id) ON DELETE SET NULL,
                external_user_id VARCHAR NOT NULL,
                event_type VARCHAR(50) NOT NULL,
                data JSON,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            );
            """
        )
    )
    for statement in (
        "CREATE INDEX IF NOT EXISTS ix_projects_owner_user_id ON projects (owner_user_id)",
        "CREATE INDEX IF NOT EXISTS ix_projects_owner_email ON projects (owner_email)",
        "CREATE INDEX IF NOT EXISTS ix_project_users_project_id ON project_users (project_id)",
        "CREATE INDEX IF NOT EXISTS ix_email_logs_project_id ON email_logs (project_id)",
        "CREATE INDEX IF NOT EXISTS ix_email_logs_user_id ON email_logs (user_id)",
        "CREATE INDEX IF NOT EXISTS ix_events_project_id ON events (project_id)",
        "CREATE INDEX IF NOT EXISTS ix_events_created_at ON events (created_at)",
    ):
        conn.execute(sa.text(statement))


def downgrade() -> None:
    """Keep tenant data for safety; no-op downgrade."""
    pass
