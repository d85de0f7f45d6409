"""baseline schema for users, leads, timeline, documents and audit trail

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 00:00:01
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


RLS_TABLES = ("users", "leads", "lead_steps", "documents", "activity_log", "notifications")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("assigned_area", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
        sa.CheckConstraint("role IN ('admin','office','agent','installer','customer')", name="ck_users_role"),
        sa.CheckConstraint("status IN ('active','disabled')", name="ck_users_status"),
    )
    op.create_index("idx_users_role", "users", ["role"])

    op.create_table(
        "leads",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("customer_name", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("kw_requirement", sa.Numeric(10, 2), nullable=True),
        sa.Column("roof_type", sa.String(length=64), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("source", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("created_by", sa.String(length=36), nullable=True),
        sa.Column("customer_account_id", sa.String(length=36), nullable=True),
        sa.Column("installer_id", sa.String(length=36), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.ForeignKeyConstraint(["customer_account_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["installer_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('lead','interested','processing','completed','cancelled')",
            name="ck_leads_status",
        ),
        sa.CheckConstraint("source IN ('agent','office','customer','self')", name="ck_leads_source"),
    )
    op.create_index("idx_leads_status", "leads", ["status"])
    op.create_index("idx_leads_created_by", "leads", ["created_by"])
    op.create_index("idx_leads_customer_account_id", "leads", ["customer_account_id"])
    op.create_index("idx_leads_installer_id", "leads", ["installer_id"])
    op.create_index("idx_leads_phone", "leads", ["phone"])

    op.create_table(
        "step_master",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("step_name", sa.String(length=255), nullable=False),
        sa.Column("order_index", sa.Integer(), nullable=False),
        sa.Column("allowed_roles", sa.JSON(), nullable=False),
        sa.Column("remarks_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("attachments_allowed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("customer_upload", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("requires_installer_assignment", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_step_master_order_index", "step_master", ["order_index"], unique=True)

    op.create_table(
        "step_documents",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("step_id", sa.String(length=36), nullable=False),
        sa.Column("document_category", sa.String(length=64), nullable=False),
        sa.Column("submission_type", sa.String(length=32), nullable=False),
        sa.ForeignKeyConstraint(["step_id"], ["step_master.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("step_id", "document_category", name="uq_step_documents_step_category"),
        sa.CheckConstraint("submission_type IN ('file','form')", name="ck_step_documents_submission_type"),
    )
    op.create_index("ix_step_documents_step_id", "step_documents", ["step_id"])

    op.create_table(
        "lead_steps",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("lead_id", sa.String(length=36), nullable=False),
        sa.Column("step_id", sa.String(length=36), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("completed_by", sa.String(length=36), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("attachments", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["lead_id"], ["leads.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["step_id"], ["step_master.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["completed_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("lead_id", "step_id", name="uq_lead_steps_lead_step"),
        sa.CheckConstraint(
            "status IN ('upcoming','pending','completed','halted')",
            name="ck_lead_steps_status",
        ),
    )
    op.create_index("ix_lead_steps_lead_id", "lead_steps", ["lead_id"])
    op.create_index("ix_lead_steps_step_id", "lead_steps", ["step_id"])
    op.create_index("idx_lead_steps_status", "lead_steps", ["status"])

    op.create_table(
        "documents",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("lead_id", sa.String(length=36), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("document_category", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("is_submitted", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("file_path", sa.Text(), nullable=True),
        sa.Column("file_name", sa.String(length=255), nullable=True),
        sa.Column("file_size", sa.BigInteger(), nullable=True),
        sa.Column("mime_type", sa.String(length=128), nullable=True),
        sa.Column("form_json", sa.JSON(), nullable=True),
        sa.Column("uploaded_by", sa.String(length=36), nullable=False),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["lead_id"], ["leads.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["uploaded_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("status IN ('valid','corrupted')", name="ck_documents_status"),
        sa.CheckConstraint("type IN ('mandatory','customer')", name="ck_documents_type"),
    )
    op.create_index("idx_documents_lead_category", "documents", ["lead_id", "document_category"])
    op.create_index("idx_documents_status", "documents", ["status"])

    op.create_table(
        "activity_log",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("lead_id", sa.String(length=36), nullable=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=36), nullable=True),
        sa.Column("old_value", sa.JSON(), nullable=True),
        sa.Column("new_value", sa.JSON(), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["lead_id"], ["leads.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_activity_log_lead_id", "activity_log", ["lead_id"])
    op.create_index("ix_activity_log_user_id", "activity_log", ["user_id"])
    op.create_index("ix_activity_log_timestamp", "activity_log", ["timestamp"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("lead_id", sa.String(length=36), nullable=True),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["lead_id"], ["leads.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_read", "notifications", ["read"])

    if op.get_bind().dialect.name == "postgresql":
        _create_row_level_security()


def _create_row_level_security() -> None:
    """Row visibility for the authenticated role; admin and office see every lead."""
    for table in RLS_TABLES:
        op.execute(f"ALTER TABLE {table} ENABLE ROW LEVEL SECURITY")

    op.execute(
        """
        CREATE OR REPLACE FUNCTION current_user_role() RETURNS text
        LANGUAGE sql STABLE SECURITY DEFINER AS $$
            SELECT role FROM users
            WHERE id = current_setting('request.jwt.claim.sub', true)
        $$
        """
    )
    op.execute(
        """
        CREATE POLICY users_visible ON users FOR SELECT
        USING (
            id = current_setting('request.jwt.claim.sub', true)
            OR current_user_role() IN ('admin', 'office')
        )
        """
    )
    op.execute(
        """
        CREATE POLICY leads_visible ON leads FOR ALL
        USING (
            current_user_role() IN ('admin', 'office')
            OR (current_user_role() = 'agent' AND created_by = current_setting('request.jwt.claim.sub', true))
            OR (current_user_role() = 'installer' AND installer_id = current_setting('request.jwt.claim.sub', true))
            OR (current_user_role() = 'customer' AND customer_account_id = current_setting('request.jwt.claim.sub', true))
        )
        WITH CHECK (current_setting('request.jwt.claim.sub', true) IS NOT NULL)
        """
    )
    for table in ("lead_steps", "documents", "activity_log"):
        op.execute(
            f"""
            CREATE POLICY {table}_follow_lead ON {table} FOR ALL
            USING (lead_id IS NULL OR lead_id IN (SELECT id FROM leads))
            """
        )
    op.execute(
        """
        CREATE POLICY notifications_owner ON notifications FOR ALL
        USING (user_id = current_setting('request.jwt.claim.sub', true))
        """
    )


def downgrade() -> None:
    if op.get_bind().dialect.name == "postgresql":
        op.execute("DROP FUNCTION IF EXISTS current_user_role() CASCADE")

    op.drop_index("ix_notifications_read", table_name="notifications")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("ix_activity_log_timestamp", table_name="activity_log")
    op.drop_index("ix_activity_log_user_id", table_name="activity_log")
    op.drop_index("ix_activity_log_lead_id", table_name="activity_log")
    op.drop_table("activity_log")

    op.drop_index("idx_documents_status", table_name="documents")
    op.drop_index("idx_documents_lead_category", table_name="documents")
    op.drop_table("documents")

    op.drop_index("idx_lead_steps_status", table_name="lead_steps")
    op.drop_index("ix_lead_steps_step_id", table_name="lead_steps")
    op.drop_index("ix_lead_steps_lead_id", table_name="lead_steps")
    op.drop_table("lead_steps")

    op.drop_index("ix_step_documents_step_id", table_name="step_documents")
    op.drop_table("step_documents")

    op.drop_index("ix_step_master_order_index", table_name="step_master")
    op.drop_table("step_master")

    for index_name in (
        "idx_leads_phone",
        "idx_leads_installer_id",
        "idx_leads_customer_account_id",
        "idx_leads_created_by",
        "idx_leads_status",
    ):
        op.drop_index(index_name, table_name="leads")
    op.drop_table("leads")

    op.drop_index("idx_users_role", table_name="users")
    op.drop_table("users")
