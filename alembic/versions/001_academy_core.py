"""Academy core schema.

Creates the collaborator tables read by the automation core (sports,
batches, students, payments, attendance, performance_assessments), the
gamification tables (badges, student_badges, student_points,
achievement_history) and the campaign tables (campaigns,
campaign_messages).

Revision ID: 001_academy_core
Revises: None
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_academy_core"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Collaborators ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS sports (
            id SERIAL PRIMARY KEY,
            name VARCHAR(128) NOT NULL,
            description TEXT,
            is_active BOOLEAN NOT NULL DEFAULT true
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS batches (
            id SERIAL PRIMARY KEY,
            name VARCHAR(128) NOT NULL,
            sport_id INTEGER REFERENCES sports(id),
            skill_level VARCHAR(32) NOT NULL DEFAULT 'beginner',
            is_active BOOLEAN NOT NULL DEFAULT true
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS students (
            id SERIAL PRIMARY KEY,
            student_code VARCHAR(32) UNIQUE NOT NULL,
            name VARCHAR(128) NOT NULL,
            phone VARCHAR(32) NOT NULL,
            email VARCHAR(320),
            date_of_birth DATE,
            sport_id INTEGER REFERENCES sports(id),
            batch_id INTEGER REFERENCES batches(id),
            skill_level VARCHAR(32) NOT NULL DEFAULT 'beginner',
            joining_date TIMESTAMPTZ DEFAULT NOW(),
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS payments (
            id SERIAL PRIMARY KEY,
            student_id INTEGER NOT NULL REFERENCES students(id) ON DELETE CASCADE,
            amount NUMERIC(10, 2) NOT NULL,
            payment_type VARCHAR(32) NOT NULL DEFAULT 'monthly',
            status VARCHAR(16) NOT NULL DEFAULT 'pending',
            due_date TIMESTAMPTZ,
            paid_date TIMESTAMPTZ,
            month_year VARCHAR(7),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_payments_status_due
        ON payments(status, due_date)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS attendance (
            id SERIAL PRIMARY KEY,
            student_id INTEGER NOT NULL REFERENCES students(id) ON DELETE CASCADE,
            batch_id INTEGER REFERENCES batches(id),
            date DATE NOT NULL,
            status VARCHAR(16) NOT NULL,
            marked_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_attendance_student_date
        ON attendance(student_id, date DESC)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS performance_assessments (
            id SERIAL PRIMARY KEY,
            student_id INTEGER NOT NULL REFERENCES students(id) ON DELETE CASCADE,
            assessed_on DATE NOT NULL,
            score DOUBLE PRECISION NOT NULL,
            notes TEXT
        )
    """)

    # --- Gamification ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS badges (
            id SERIAL PRIMARY KEY,
            name VARCHAR(128) UNIQUE NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            icon VARCHAR(64),
            color VARCHAR(32),
            category VARCHAR(32) NOT NULL,
            requirement JSON NOT NULL DEFAULT '{}',
            points INTEGER NOT NULL DEFAULT 0,
            rarity VARCHAR(16) NOT NULL DEFAULT 'common',
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS student_badges (
            id SERIAL PRIMARY KEY,
            student_id INTEGER NOT NULL REFERENCES students(id) ON DELETE CASCADE,
            badge_id INTEGER NOT NULL REFERENCES badges(id),
            earned_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            progress JSON NOT NULL DEFAULT '{}',
            is_displayed BOOLEAN NOT NULL DEFAULT true,
            CONSTRAINT student_badges_student_id_badge_id_key UNIQUE (student_id, badge_id)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS student_points (
            student_id INTEGER PRIMARY KEY REFERENCES students(id) ON DELETE CASCADE,
            total_points INTEGER NOT NULL DEFAULT 0,
            experience_points INTEGER NOT NULL DEFAULT 0,
            monthly_points INTEGER NOT NULL DEFAULT 0,
            level INTEGER NOT NULL DEFAULT 1,
            last_updated TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS achievement_history (
            id SERIAL PRIMARY KEY,
            student_id INTEGER NOT NULL REFERENCES students(id) ON DELETE CASCADE,
            action VARCHAR(32) NOT NULL,
            description VARCHAR(256) NOT NULL,
            points INTEGER NOT NULL DEFAULT 0,
            metadata JSON NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_achievement_history_student
        ON achievement_history(student_id, created_at DESC)
    """)

    # --- Campaigns ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS campaigns (
            id SERIAL PRIMARY KEY,
            name VARCHAR(128) NOT NULL,
            description TEXT,
            type VARCHAR(32) NOT NULL DEFAULT 'custom',
            status VARCHAR(16) NOT NULL DEFAULT 'draft',
            trigger VARCHAR(16) NOT NULL DEFAULT 'manual',
            target_audience JSON NOT NULL DEFAULT '{}',
            message_template JSON NOT NULL,
            automation_rules JSON,
            analytics JSON NOT NULL DEFAULT '{"sent": 0, "delivered": 0, "read": 0, "failed": 0}',
            last_run_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS campaign_messages (
            id SERIAL PRIMARY KEY,
            campaign_id INTEGER NOT NULL REFERENCES campaigns(id) ON DELETE CASCADE,
            recipient VARCHAR(32) NOT NULL,
            student_id INTEGER REFERENCES students(id) ON DELETE SET NULL,
            message_content TEXT NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'pending',
            provider_message_id VARCHAR(128),
            error_message TEXT,
            sent_at TIMESTAMPTZ,
            delivered_at TIMESTAMPTZ,
            read_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_campaign_messages_campaign
        ON campaign_messages(campaign_id, created_at DESC)
    """)


def downgrade() -> None:
    for table in [
        "campaign_messages",
        "campaigns",
        "achievement_history",
        "student_points",
        "student_badges",
        "badges",
        "performance_assessments",
        "attendance",
        "payments",
        "students",
        "batches",
        "sports",
    ]:
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE")  # noqa: S608
