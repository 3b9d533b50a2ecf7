"""add stock alerts

Revision ID: 8c4f2e61b0a3
Revises: 5b1e0c7a9d21
Create Date: 2026-10-17
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "8c4f2e61b0a3"
down_revision: Union[str, Sequence[str], None] = "5b1e0c7a9d21"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ALERT_KIND = sa.Enum("low_stock", "out_of_stock", name="alert_kind")
ALERT_SEVERITY = sa.Enum("warning", "critical", name="alert_severity")


def upgrade() -> None:
    op.create_table(
        "alerts",
        sa.Column("id", sa.BigInteger, primary_key=True),
        sa.Column("kind", ALERT_KIND, nullable=False),
        sa.Column("severity", ALERT_SEVERITY, nullable=False),
        sa.Column("sku", sa.String(64), sa.ForeignKey("inventory.sku", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("read", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("resolved", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("resolved_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_alerts_sku_open", "alerts", ["sku", "resolved"])
    # one open alert per (sku, kind)
    op.create_index(
        "uq_alerts_open_sku_kind",
        "alerts",
        ["sku", "kind"],
        unique=True,
        postgresql_where=sa.text("NOT resolved"),
    )


def downgrade() -> None:
    op.drop_index("uq_alerts_open_sku_kind", table_name="alerts")
    op.drop_index("ix_alerts_sku_open", table_name="alerts")
    op.drop_table("alerts")
    ALERT_SEVERITY.drop(op.get_bind(), checkfirst=True)
    ALERT_KIND.drop(op.get_bind(), checkfirst=True)
