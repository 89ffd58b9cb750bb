"""create catalog, lot, movement and audit tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(inspector: sa.Inspector, table_name: str) -> bool:
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not _table_exists(inspector, "medications"):
        op.create_table(
            "medications",
            sa.Column("key", sa.String(length=64), nullable=False),
            sa.Column("description", sa.String(length=255), nullable=False),
            sa.Column("presentation", sa.String(length=255), nullable=False),
            sa.Column("unit", sa.String(length=20), nullable=False, server_default="mg"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.PrimaryKeyConstraint("key"),
        )

    if not _table_exists(inspector, "staff_members"):
        op.create_table(
            "staff_members",
            sa.Column("id", sa.String(length=64), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("position", sa.String(length=100), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_staff_members_name", "staff_members", ["name"], unique=False)

    if not _table_exists(inspector, "inventory_lots"):
        op.create_table(
            "inventory_lots",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("medication_key", sa.String(length=64), nullable=False),
            sa.Column("lot_id", sa.String(length=100), nullable=False),
            sa.Column("expiry_date", sa.Date(), nullable=False),
            sa.Column("stock", sa.Numeric(14, 3), nullable=False),
            sa.Column("unit_cost", sa.Numeric(12, 2), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("medication_key", "lot_id", name="ux_inventory_lots_medication_lot"),
        )
        op.create_index("ix_inventory_lots_medication_key", "inventory_lots", ["medication_key"], unique=False)
        op.create_index(
            "ix_inventory_lots_medication_expiry",
            "inventory_lots",
            ["medication_key", "expiry_date"],
            unique=False,
        )

    if not _table_exists(inspector, "movements"):
        op.create_table(
            "movements",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("movement_type", sa.String(length=10), nullable=False),
            sa.Column("medication_key", sa.String(length=64), nullable=False),
            sa.Column("responsible", sa.String(length=255), nullable=False),
            sa.Column("quantity", sa.Numeric(14, 3), nullable=False),
            sa.Column("lot_id", sa.String(length=100), nullable=True),
            sa.Column("expiry_date", sa.Date(), nullable=True),
            sa.Column("unit_cost", sa.Numeric(12, 2), nullable=True),
            sa.Column("supplier", sa.String(length=255), nullable=True),
            sa.Column("invoice", sa.String(length=100), nullable=True),
            sa.Column("purchase_order", sa.String(length=100), nullable=True),
            sa.Column("laboratory", sa.String(length=255), nullable=True),
            sa.Column("reason", sa.String(length=40), nullable=True),
            sa.Column("patient_json", sa.JSON(), nullable=True),
            sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_movements_medication_key", "movements", ["medication_key"], unique=False)
        op.create_index("ix_movements_occurred_at", "movements", ["occurred_at"], unique=False)
        op.create_index(
            "ix_movements_type_occurred_at",
            "movements",
            ["movement_type", "occurred_at"],
            unique=False,
        )

    if not _table_exists(inspector, "movement_allocations"):
        op.create_table(
            "movement_allocations",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("movement_id", sa.String(length=36), nullable=False),
            sa.Column("position", sa.Integer(), nullable=False),
            sa.Column("lot_id", sa.String(length=100), nullable=False),
            sa.Column("quantity", sa.Numeric(14, 3), nullable=False),
            sa.Column("unit_cost", sa.Numeric(12, 2), nullable=False),
            sa.Column("expiry_date", sa.Date(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.ForeignKeyConstraint(["movement_id"], ["movements.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index(
            "ix_movement_allocations_movement_id",
            "movement_allocations",
            ["movement_id"],
            unique=False,
        )

    if not _table_exists(inspector, "audit_logs"):
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("actor", sa.String(length=255), nullable=False),
            sa.Column("action", sa.String(length=100), nullable=False),
            sa.Column("target_type", sa.String(length=100), nullable=False),
            sa.Column("target_id", sa.String(length=36), nullable=True),
            sa.Column("metadata_json", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_audit_logs_target_id", "audit_logs", ["target_id"], unique=False)
        op.create_index(
            "ix_audit_logs_action_created_at",
            "audit_logs",
            ["action", "created_at"],
            unique=False,
        )


def downgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    for table_name in (
        "audit_logs",
        "movement_allocations",
        "movements",
        "inventory_lots",
        "staff_members",
        "medications",
    ):
        if _table_exists(inspector, table_name):
            op.drop_table(table_name)
