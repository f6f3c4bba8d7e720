"""track instruments without fundamentals coverage

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-18
"""
import sqlalchemy as sa
from alembic import op

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "no_data_available",
        sa.Column("ticker", sa.String(50), primary_key=True),
        sa.Column("exchange_code", sa.String(20), primary_key=True),
        sa.Column("failure_count", sa.Integer, nullable=False),
        sa.Column("first_failed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_attempted_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_error", sa.Text),
    )


def downgrade():
    op.drop_table("no_data_available")
