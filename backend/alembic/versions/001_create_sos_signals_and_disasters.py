"""Create sos_signals, sos_signal_notes and disasters tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "sos_signals",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("message", sa.Text(), nullable=False, server_default=""),
        sa.Column("priority", sa.String(20), nullable=False, server_default="medium"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("escalation_level", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("assigned_responder", sa.String(64), nullable=True),
        sa.Column("cluster_id", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("auto_escalated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("response_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resolution_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_sos_signals")),
    )
    op.create_index(op.f("ix_sos_signals_user_id"), "sos_signals", ["user_id"], unique=False)
    op.create_index(op.f("ix_sos_signals_status"), "sos_signals", ["status"], unique=False)
    op.create_index(op.f("ix_sos_signals_created_at"), "sos_signals", ["created_at"], unique=False)

    op.create_table(
        "sos_signal_notes",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("signal_id", sa.Integer(), nullable=False),
        sa.Column("author_id", sa.String(64), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(
            ["signal_id"],
            ["sos_signals.id"],
            name=op.f("fk_sos_signal_notes_signal_id_sos_signals"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_sos_signal_notes")),
    )
    op.create_index(op.f("ix_sos_signal_notes_signal_id"), "sos_signal_notes", ["signal_id"], unique=False)

    op.create_table(
        "disasters",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("disaster_code", sa.String(20), nullable=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("severity", sa.String(20), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_disasters")),
        sa.UniqueConstraint("disaster_code", name=op.f("uq_disasters_disaster_code")),
    )


def downgrade() -> None:
    op.drop_table("disasters")
    op.drop_index(op.f("ix_sos_signal_notes_signal_id"), table_name="sos_signal_notes")
    op.drop_table("sos_signal_notes")
    op.drop_index(op.f("ix_sos_signals_created_at"), table_name="sos_signals")
    op.drop_index(op.f("ix_sos_signals_status"), table_name="sos_signals")
    op.drop_index(op.f("ix_sos_signals_user_id"), table_name="sos_signals")
    op.drop_table("sos_signals")
