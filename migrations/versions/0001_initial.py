"""initial market data tables

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""
import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "exchanges",
        sa.Column("code", sa.String(20), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("operating_mic", sa.String(100)),
        sa.Column("country", sa.String(100), nullable=False),
        sa.Column("currency", sa.String(10), nullable=False),
        sa.Column("fetched_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "symbols",
        sa.Column("ticker", sa.String(50), primary_key=True),
        sa.Column("exchange_code", sa.String(20), primary_key=True),
        sa.Column("parent_exchange", sa.String(20), nullable=False),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("type", sa.String(50)),
        sa.Column("isin", sa.String(20)),
        sa.Column("currency", sa.String(10)),
        sa.Column("is_active", sa.Boolean, nullable=False),
        sa.Column("fetched_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_symbols_parent_exchange", "symbols", ["parent_exchange"])

    op.create_table(
        "stock_quotes",
        sa.Column("ticker", sa.String(50), primary_key=True),
        sa.Column("current_price", sa.Float),
        sa.Column("previous_close", sa.Float),
        sa.Column("change", sa.Float),
        sa.Column("change_percent", sa.Float),
        sa.Column("open", sa.Float),
        sa.Column("high", sa.Float),
        sa.Column("low", sa.Float),
        sa.Column("volume", sa.Float),
        sa.Column("average_volume", sa.Float),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        sa.Column("fetched_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "stock_fundamentals",
        sa.Column("ticker", sa.String(50), primary_key=True),
        sa.Column("payload", postgresql.JSONB, nullable=False),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        sa.Column("fetched_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade():
    op.drop_table("stock_fundamentals")
    op.drop_table("stock_quotes")
    op.drop_index("ix_symbols_parent_exchange", table_name="symbols")
    op.drop_table("symbols")
    op.drop_table("exchanges")
