"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates all tables for the Vehicle Accreditation Manager:
users, user_permissions, events, zone_configs, accreditations, vehicles,
zone_movements, vehicle_time_slots, accreditation_history,
accreditation_history_archive, chat_messages.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

HISTORY_ACTIONS = (
    "CREATED", "STATUS_CHANGED", "ZONE_CHANGED", "ZONE_TRANSFER", "VEHICLE_ADDED",
    "VEHICLE_REMOVED", "VEHICLE_UPDATED", "VEHICLE_RETURN", "INFO_UPDATED",
    "ARCHIVED", "EMAIL_SENT", "CHAT_MESSAGE", "DELETED",
)

# historyaction is shared by two tables, so it is created once up front
history_action = postgresql.ENUM(*HISTORY_ACTIONS, name="historyaction", create_type=False)


def upgrade() -> None:
    sa.Enum(*HISTORY_ACTIONS, name="historyaction").create(op.get_bind(), checkfirst=True)

    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False, server_default=""),
        sa.Column("role", sa.Enum("USER", "ADMIN", "SUPER_ADMIN", name="userrole"), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- user_permissions ---
    op.create_table(
        "user_permissions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "feature",
            sa.Enum(
                "LISTE", "CREER", "PLAQUE", "QR_CODE", "FLUX_VEHICULES", "BILAN_CARBONE",
                "GESTION_ZONES", "GESTION_DATES", "ARCHIVES",
                name="feature",
            ),
            nullable=False,
        ),
        sa.Column("can_read", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("can_write", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("user_id", "feature", name="uq_user_feature"),
    )

    # --- events ---
    op.create_table(
        "events",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(255), nullable=False, unique=True),
        sa.Column("logo", sa.String(500), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("color", sa.String(20), nullable=False, server_default="#3DAAA4"),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("setup_start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("setup_end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("teardown_start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("teardown_end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("access_start_time", sa.String(5), nullable=True),
        sa.Column("access_end_time", sa.String(5), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("activation_days", sa.Integer, nullable=False, server_default="7"),
        sa.Column("is_archived", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # --- zone_configs ---
    op.create_table(
        "zone_configs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("zone", sa.String(50), nullable=False, unique=True),
        sa.Column("label", sa.String(150), nullable=False),
        sa.Column("address", sa.String(500), nullable=False),
        sa.Column("latitude", sa.Float, nullable=False),
        sa.Column("longitude", sa.Float, nullable=False),
        sa.Column("is_final_destination", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("color", sa.String(20), nullable=False, server_default="#3DAAA4"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
    )

    # --- accreditations ---
    op.create_table(
        "accreditations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("company", sa.String(255), nullable=False),
        sa.Column("stand", sa.String(255), nullable=False),
        sa.Column("unloading", sa.String(255), nullable=False, server_default=""),
        sa.Column("event", sa.String(255), nullable=False),
        sa.Column("message", sa.Text, nullable=False, server_default=""),
        sa.Column("consent", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column(
            "status",
            sa.Enum("ATTENTE", "ENTREE", "SORTIE", "NOUVEAU", "REFUS", "ABSENT", name="accreditationstatus"),
            nullable=False,
        ),
        sa.Column("current_zone", sa.String(50), nullable=True),
        sa.Column("entry_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("exit_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_archived", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_accreditations_is_archived", "accreditations", ["is_archived"])

    # --- vehicles ---
    op.create_table(
        "vehicles",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("accreditation_id", sa.String(36), sa.ForeignKey("accreditations.id"), nullable=False),
        sa.Column("plate", sa.String(50), nullable=False),
        sa.Column("size", sa.String(50), nullable=False),
        sa.Column("phone_code", sa.String(10), nullable=False),
        sa.Column("phone_number", sa.String(30), nullable=False),
        sa.Column("date", sa.String(20), nullable=False),
        sa.Column("time", sa.String(20), nullable=False, server_default=""),
        sa.Column("city", sa.String(255), nullable=False),
        sa.Column("unloading", sa.Text, nullable=False, server_default="[]"),
        sa.Column("kms", sa.String(20), nullable=False, server_default=""),
        sa.Column(
            "vehicle_type",
            sa.Enum("PORTEUR", "PORTEUR_ARTICULE", "SEMI_REMORQUE", name="vehicletype"),
            nullable=True,
        ),
        sa.Column("trailer_plate", sa.String(50), nullable=True),
        sa.Column("empty_weight", sa.Float, nullable=True),
        sa.Column("max_weight", sa.Float, nullable=True),
        sa.Column("current_weight", sa.Float, nullable=True),
    )
    op.create_index("ix_vehicles_accreditation_id", "vehicles", ["accreditation_id"])

    # --- zone_movements ---
    op.create_table(
        "zone_movements",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("accreditation_id", sa.String(36), sa.ForeignKey("accreditations.id"), nullable=False),
        sa.Column("from_zone", sa.String(50), nullable=True),
        sa.Column("to_zone", sa.String(50), nullable=False),
        sa.Column("action", sa.Enum("ENTRY", "EXIT", "TRANSFER", name="zoneaction"), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=True),
    )
    op.create_index("ix_zone_movements_accreditation_id", "zone_movements", ["accreditation_id"])

    # --- vehicle_time_slots ---
    op.create_table(
        "vehicle_time_slots",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("accreditation_id", sa.String(36), sa.ForeignKey("accreditations.id"), nullable=False),
        sa.Column("vehicle_id", sa.Integer, sa.ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False),
        sa.Column("date", sa.Date, nullable=False),
        sa.Column("step_number", sa.Integer, nullable=False),
        sa.Column("zone", sa.String(50), nullable=False),
        sa.Column("entry_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("exit_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_vehicle_time_slots_accreditation_id", "vehicle_time_slots", ["accreditation_id"])

    # --- accreditation_history ---
    op.create_table(
        "accreditation_history",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("accreditation_id", sa.String(36), sa.ForeignKey("accreditations.id"), nullable=False),
        sa.Column("action", history_action, nullable=False),
        sa.Column("field", sa.String(50), nullable=True),
        sa.Column("old_value", sa.Text, nullable=True),
        sa.Column("new_value", sa.Text, nullable=True),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("user_agent", sa.String(500), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_accreditation_history_accreditation_id", "accreditation_history", ["accreditation_id"])
    op.create_index("ix_accreditation_history_created_at", "accreditation_history", ["created_at"])

    # --- accreditation_history_archive ---
    op.create_table(
        "accreditation_history_archive",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=False),
        sa.Column("accreditation_id", sa.String(36), nullable=False),
        sa.Column("action", history_action, nullable=False),
        sa.Column("summary", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_accreditation_history_archive_accreditation_id",
        "accreditation_history_archive",
        ["accreditation_id"],
    )

    # --- chat_messages ---
    op.create_table(
        "chat_messages",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("accreditation_id", sa.String(36), sa.ForeignKey("accreditations.id"), nullable=False),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("user_name", sa.String(100), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_chat_messages_accreditation_id", "chat_messages", ["accreditation_id"])


def downgrade() -> None:
    op.drop_table("chat_messages")
    op.drop_table("accreditation_history_archive")
    op.drop_table("accreditation_history")
    op.drop_table("vehicle_time_slots")
    op.drop_table("zone_movements")
    op.drop_table("vehicles")
    op.drop_table("accreditations")
    op.drop_table("zone_configs")
    op.drop_table("events")
    op.drop_table("user_permissions")
    op.drop_table("users")
    bind = op.get_bind()
    for name in ("historyaction", "zoneaction", "vehicletype", "accreditationstatus", "feature", "userrole"):
        sa.Enum(name=name).drop(bind, checkfirst=True)
