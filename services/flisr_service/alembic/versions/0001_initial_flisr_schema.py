"""initial flisr schema: zones, grid connections, event log, fault waveforms

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 10:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SCHEMA = "flisr"


def upgrade() -> None:
    op.create_table(
        "zones",
        sa.Column("zone_id", sa.String(36), primary_key=True),
        sa.Column("feeder_number", sa.Integer(), nullable=False),
        sa.Column("location_description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(50), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        schema=SCHEMA,
    )

    op.create_table(
        "grid_connections",
        sa.Column("connection_id", sa.String(36), primary_key=True),
        sa.Column("from_zone_id", sa.String(36), sa.ForeignKey(f"{SCHEMA}.zones.zone_id"), nullable=False),
        sa.Column("to_zone_id", sa.String(36), sa.ForeignKey(f"{SCHEMA}.zones.zone_id"), nullable=False),
        sa.Column("connection_status", sa.String(50), nullable=False),
        sa.Column("is_faulty", sa.Boolean(), nullable=False),
        sa.Column("length_km", sa.Float(), nullable=False),
        sa.Column("resistance_ohm_km", sa.Float(), nullable=False),
        sa.Column("inductance_h_km", sa.Float(), nullable=False),
        sa.Column("capacitance_f_km", sa.Float(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("length_km > 0", name="ck_grid_connections_length_positive"),
        sa.CheckConstraint("inductance_h_km > 0", name="ck_grid_connections_inductance_positive"),
        sa.CheckConstraint("capacitance_f_km > 0", name="ck_grid_connections_capacitance_positive"),
        sa.CheckConstraint(
            "connection_status IN ('ACTIVE', 'INACTIVE', 'CUT')", name="ck_grid_connections_status"
        ),
        sa.CheckConstraint(
            "connection_status != 'CUT' OR is_faulty", name="ck_grid_connections_cut_is_faulty"
        ),
        schema=SCHEMA,
    )
    op.create_index("ix_grid_connections_from_zone_id", "grid_connections", ["from_zone_id"], schema=SCHEMA)
    op.create_index("ix_grid_connections_to_zone_id", "grid_connections", ["to_zone_id"], schema=SCHEMA)

    op.create_table(
        "event_log",
        sa.Column("event_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("zone_id", sa.String(36), sa.ForeignKey(f"{SCHEMA}.zones.zone_id"), nullable=True),
        sa.Column("event_type", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("resolved", sa.Boolean(), nullable=False),
        schema=SCHEMA,
    )
    op.create_index("ix_event_log_zone_id", "event_log", ["zone_id"], schema=SCHEMA)
    op.create_index("ix_event_log_event_type", "event_log", ["event_type"], schema=SCHEMA)
    op.create_index("ix_event_log_timestamp", "event_log", ["timestamp"], schema=SCHEMA)

    op.create_table(
        "fault_waveforms",
        sa.Column("waveform_id", sa.String(36), primary_key=True),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey(f"{SCHEMA}.event_log.event_id"), nullable=False),
        sa.Column(
            "connection_id",
            sa.String(36),
            sa.ForeignKey(f"{SCHEMA}.grid_connections.connection_id"),
            nullable=False,
        ),
        sa.Column("timestamp_a", sa.BigInteger(), nullable=False),
        sa.Column("timestamp_b", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        schema=SCHEMA,
    )
    op.create_index("ix_fault_waveforms_event_id", "fault_waveforms", ["event_id"], schema=SCHEMA)


def downgrade() -> None:
    op.drop_index("ix_fault_waveforms_event_id", table_name="fault_waveforms", schema=SCHEMA)
    op.drop_table("fault_waveforms", schema=SCHEMA)
    op.drop_index("ix_event_log_timestamp", table_name="event_log", schema=SCHEMA)
    op.drop_index("ix_event_log_event_type", table_name="event_log", schema=SCHEMA)
    op.drop_index("ix_event_log_zone_id", table_name="event_log", schema=SCHEMA)
    op.drop_table("event_log", schema=SCHEMA)
    op.drop_index("ix_grid_connections_to_zone_id", table_name="grid_connections", schema=SCHEMA)
    op.drop_index("ix_grid_connections_from_zone_id", table_name="grid_connections", schema=SCHEMA)
    op.drop_table("grid_connections", schema=SCHEMA)
    op.drop_table("zones", schema=SCHEMA)
