"""Sales tracker schema (SQL-only).

Revision ID: 001_sales_tracker
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from pathlib import Path

from alembic import op


# revision identifiers, used by Alembic.
revision = "001_sales_tracker"
down_revision = None
branch_labels = None
depends_on = None


def _read_sql() -> str:
    sql_path = Path(__file__).resolve().parents[1] / "sql" / "001_sales_tracker.sql"
    return sql_path.read_text(encoding="utf-8")


def upgrade() -> None:
    conn = op.get_bind()
    conn.exec_driver_sql(_read_sql())


def downgrade() -> None:
    conn = op.get_bind()
    for table in ("audit_logs", "closers", "sales", "proofs", "chat_messages"):
        conn.exec_driver_sql(f"DROP TABLE IF EXISTS {table}")
