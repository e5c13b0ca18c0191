"""Asset registry, booking headers, snapshot ledger and outbox

Revision ID: 20261019_booking_engine
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_booking_engine"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "asset_records",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("asset_code", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("asset_type", sa.String(64), nullable=True),
        sa.Column("lot_no", sa.String(64), nullable=True),
        sa.Column("holder", sa.String(128), nullable=True),
        sa.Column("location", sa.String(128), nullable=True),
        sa.Column("remark", sa.Text(), nullable=True),
        sa.Column("current_status", sa.String(32), nullable=False, server_default="FREE"),
        sa.Column("previous_status", sa.String(32), nullable=True),
        sa.Column("draft_id", sa.String(64), nullable=True),
        sa.Column("ref_code", sa.String(32), nullable=True),
        sa.Column("scan_by", sa.String(64), nullable=True),
        sa.Column("scan_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("scan_token", sa.String(32), nullable=True),
        sa.Column("origin", sa.String(128), nullable=True),
        sa.Column("destination", sa.String(128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_by", sa.String(64), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("asset_records", schema=None) as batch_op:
        batch_op.create_index("ix_asset_records_asset_code", ["asset_code"], unique=True)
        batch_op.create_index("ix_asset_records_current_status", ["current_status"], unique=False)
        batch_op.create_index("ix_asset_records_draft_id", ["draft_id"], unique=False)
        batch_op.create_index("ix_asset_records_ref_code", ["ref_code"], unique=False)
        batch_op.create_index("ix_asset_records_status_updated", ["current_status", "updated_at"], unique=False)

    op.create_table(
        "booking_headers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("draft_id", sa.String(64), nullable=False),
        sa.Column("ref_code", sa.String(32), nullable=True),
        sa.Column("booking_type", sa.String(32), nullable=False),
        sa.Column("objective", sa.String(64), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="INITIAL"),
        sa.Column("origin", sa.String(128), nullable=True),
        sa.Column("destination", sa.String(128), nullable=True),
        sa.Column("remark", sa.Text(), nullable=True),
        sa.Column("create_date", sa.Date(), nullable=False),
        sa.Column("created_by", sa.String(64), nullable=True),
        sa.Column("updated_by", sa.String(64), nullable=True),
        sa.Column("finalized_by", sa.String(64), nullable=True),
        sa.Column("unlocked_by", sa.String(64), nullable=True),
        sa.Column("completed_by", sa.String(64), nullable=True),
        sa.Column("cancelled_by", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finalized_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("unlocked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("ref_code"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("booking_headers", schema=None) as batch_op:
        batch_op.create_index("ix_booking_headers_draft_id", ["draft_id"], unique=True)
        batch_op.create_index("ix_booking_headers_booking_type", ["booking_type"], unique=False)
        batch_op.create_index("ix_booking_headers_status", ["status"], unique=False)
        batch_op.create_index("ix_booking_headers_type_date", ["booking_type", "create_date"], unique=False)

    op.create_table(
        "ref_code_sequences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("stem", sa.String(16), nullable=False),
        sa.Column("last_value", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("stem"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("ref_code", sa.String(32), nullable=True),
        sa.Column("draft_id", sa.String(64), nullable=True),
        sa.Column("booking_type", sa.String(32), nullable=True),
        sa.Column("action", sa.String(16), nullable=False),
        sa.Column("asset_code", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("asset_type", sa.String(64), nullable=True),
        sa.Column("lot_no", sa.String(64), nullable=True),
        sa.Column("holder", sa.String(128), nullable=True),
        sa.Column("location", sa.String(128), nullable=True),
        sa.Column("current_status", sa.String(32), nullable=False),
        sa.Column("previous_status", sa.String(32), nullable=True),
        sa.Column("origin", sa.String(128), nullable=True),
        sa.Column("destination", sa.String(128), nullable=True),
        sa.Column("scan_by", sa.String(64), nullable=True),
        sa.Column("scan_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("scan_token", sa.String(32), nullable=True),
        sa.Column("recorded_by", sa.String(64), nullable=True),
        sa.Column("recorded_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("ref_code", "asset_code", "scan_token", "action", name="uq_ledger_attach_event"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("ledger_entries", schema=None) as batch_op:
        batch_op.create_index("ix_ledger_entries_ref_code", ["ref_code"], unique=False)
        batch_op.create_index("ix_ledger_entries_action", ["action"], unique=False)
        batch_op.create_index("ix_ledger_entries_asset_code", ["asset_code"], unique=False)
        batch_op.create_index("ix_ledger_ref_asset", ["ref_code", "asset_code"], unique=False)
        batch_op.create_index("ix_ledger_asset_recorded", ["asset_code", "recorded_at"], unique=False)

    op.create_table(
        "outbox_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("topic", sa.String(64), nullable=False),
        sa.Column("entity_type", sa.String(32), nullable=False),
        sa.Column("entity_key", sa.String(64), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("delivered", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("outbox_events", schema=None) as batch_op:
        batch_op.create_index("ix_outbox_events_topic", ["topic"], unique=False)
        batch_op.create_index("ix_outbox_delivered_id", ["delivered", "id"], unique=False)


def downgrade():
    op.drop_table("outbox_events")
    op.drop_table("ledger_entries")
    op.drop_table("ref_code_sequences")
    op.drop_table("booking_headers")
    op.drop_table("asset_records")
