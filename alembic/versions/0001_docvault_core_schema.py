"""docvault core schema

Revision ID: 0001_docvault_core
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from alembic import op
import sqlalchemy as sa

revision = "0001_docvault_core"
down_revision = None
branch_labels = None
depends_on = None

_ENUMS = {
    "documentrole": ("viewer", "editor", "admin"),
    "auditaction": ("create", "edit", "delete", "share", "comment", "view", "custom"),
    "subscriptionplan": ("free", "pro"),
    "subscriptionstatus": ("active", "cancelled", "expired"),
}


def _enum(name: str) -> sa.Enum:
    return sa.Enum(*_ENUMS[name], name=name, create_type=False)


def upgrade() -> None:
    # --- Enums ---
    for name, values in _ENUMS.items():
        sa.Enum(*values, name=name).create(op.get_bind(), checkfirst=True)

    # --- People ---
    op.create_table(
        "people",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("first_name", sa.String(length=120), nullable=False),
        sa.Column("last_name", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_people_email"),
    )

    # --- Cases ---
    op.create_table(
        "cases",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_by", sa.UUID(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("total_size", sa.BigInteger(), nullable=False),
        sa.Column("document_count", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_modified_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["created_by"], ["people.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_cases_created_by", "cases", ["created_by"])
    op.create_index("ix_cases_is_active", "cases", ["is_active"])

    # --- Documents ---
    op.create_table(
        "documents",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_public", sa.Boolean(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("shareable_link", sa.String(length=128), nullable=True),
        sa.Column("case_id", sa.UUID(), nullable=True),
        sa.Column("case_size_bytes", sa.BigInteger(), nullable=False),
        sa.Column("created_by", sa.UUID(), nullable=False),
        sa.Column("last_modified_by", sa.UUID(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_modified_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["case_id"], ["cases.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["people.id"]),
        sa.ForeignKeyConstraint(["last_modified_by"], ["people.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("shareable_link", name="uq_documents_shareable_link"),
    )
    op.create_index("ix_documents_created_by", "documents", ["created_by"])
    op.create_index("ix_documents_case_id", "documents", ["case_id"])

    # --- Document versions (immutable) ---
    op.create_table(
        "document_versions",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("change_description", sa.Text(), nullable=True),
        sa.Column("created_by", sa.UUID(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["document_id"], ["documents.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["people.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "document_id", "version", name="uq_document_versions_doc_version"
        ),
    )
    op.create_index(
        "ix_document_versions_document_id", "document_versions", ["document_id"]
    )

    # --- Document permissions ---
    op.create_table(
        "document_permissions",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=False),
        sa.Column("person_id", sa.UUID(), nullable=False),
        sa.Column("role", _enum("documentrole"), nullable=False),
        sa.Column("granted_by", sa.UUID(), nullable=False),
        sa.Column("granted_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["document_id"], ["documents.id"]),
        sa.ForeignKeyConstraint(["person_id"], ["people.id"]),
        sa.ForeignKeyConstraint(["granted_by"], ["people.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "document_id", "person_id", name="uq_document_permissions_doc_person"
        ),
    )
    op.create_index(
        "ix_document_permissions_document_id", "document_permissions", ["document_id"]
    )
    op.create_index(
        "ix_document_permissions_person_id", "document_permissions", ["person_id"]
    )

    # --- Audit events (no FKs, outlives its subjects) ---
    op.create_table(
        "audit_events",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("actor_id", sa.UUID(), nullable=False),
        sa.Column("action", _enum("auditaction"), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=True),
        sa.Column("case_id", sa.UUID(), nullable=True),
        sa.Column("workspace_id", sa.UUID(), nullable=True),
        sa.Column("detail", sa.Text(), nullable=True),
        sa.Column("sequence", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_events_document_id", "audit_events", ["document_id"])
    op.create_index("ix_audit_events_case_id", "audit_events", ["case_id"])
    op.create_index("ix_audit_events_workspace_id", "audit_events", ["workspace_id"])
    op.create_index("ix_audit_events_actor_id", "audit_events", ["actor_id"])
    op.create_index("ix_audit_events_created_at", "audit_events", ["created_at"])
    op.create_index("ix_audit_events_sequence", "audit_events", ["sequence"])

    # --- Presence ---
    op.create_table(
        "presence_records",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("person_id", sa.UUID(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=True),
        sa.Column("workspace_id", sa.UUID(), nullable=True),
        sa.Column("last_seen", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("cursor_position", sa.Integer(), nullable=True),
        sa.Column("selection_start", sa.Integer(), nullable=True),
        sa.Column("selection_end", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["person_id"], ["people.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("person_id", name="uq_presence_records_person"),
    )
    op.create_index(
        "ix_presence_records_document_id", "presence_records", ["document_id"]
    )
    op.create_index(
        "ix_presence_records_workspace_id", "presence_records", ["workspace_id"]
    )

    # --- Subscriptions & usage ---
    op.create_table(
        "subscriptions",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("person_id", sa.UUID(), nullable=False),
        sa.Column("plan", _enum("subscriptionplan"), nullable=False),
        sa.Column("status", _enum("subscriptionstatus"), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("billing_customer_ref", sa.String(length=255), nullable=True),
        sa.Column("billing_subscription_ref", sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(["person_id"], ["people.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_subscriptions_person_id", "subscriptions", ["person_id"])
    op.create_index("ix_subscriptions_status", "subscriptions", ["status"])

    op.create_table(
        "usage_counters",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("person_id", sa.UUID(), nullable=False),
        sa.Column("month", sa.String(length=7), nullable=False),
        sa.Column("ai_questions", sa.Integer(), nullable=False),
        sa.Column("tasks_created", sa.Integer(), nullable=False),
        sa.Column("documents_created", sa.Integer(), nullable=False),
        sa.Column("pdf_exports", sa.Integer(), nullable=False),
        sa.Column("calendar_events", sa.Integer(), nullable=False),
        sa.Column("file_uploads", sa.Integer(), nullable=False),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["person_id"], ["people.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "person_id", "month", name="uq_usage_counters_person_month"
        ),
    )


def downgrade() -> None:
    op.drop_table("usage_counters")

    op.drop_index("ix_subscriptions_status", table_name="subscriptions")
    op.drop_index("ix_subscriptions_person_id", table_name="subscriptions")
    op.drop_table("subscriptions")

    op.drop_index("ix_presence_records_workspace_id", table_name="presence_records")
    op.drop_index("ix_presence_records_document_id", table_name="presence_records")
    op.drop_table("presence_records")

    for index in (
        "ix_audit_events_sequence",
        "ix_audit_events_created_at",
        "ix_audit_events_actor_id",
        "ix_audit_events_workspace_id",
        "ix_audit_events_case_id",
        "ix_audit_events_document_id",
    ):
        op.drop_index(index, table_name="audit_events")
    op.drop_table("audit_events")

    op.drop_index(
        "ix_document_permissions_person_id", table_name="document_permissions"
    )
    op.drop_index(
        "ix_document_permissions_document_id", table_name="document_permissions"
    )
    op.drop_table("document_permissions")

    op.drop_index("ix_document_versions_document_id", table_name="document_versions")
    op.drop_table("document_versions")

    op.drop_index("ix_documents_case_id", table_name="documents")
    op.drop_index("ix_documents_created_by", table_name="documents")
    op.drop_table("documents")

    op.drop_index("ix_cases_is_active", table_name="cases")
    op.drop_index("ix_cases_created_by", table_name="cases")
    op.drop_table("cases")

    op.drop_table("people")

    for enum_name in _ENUMS:
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
