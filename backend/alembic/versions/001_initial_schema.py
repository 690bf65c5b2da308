"""Initial helpdesk schema.

Revision ID: 001
Revises:
Create Date: 2026-10-18

WHAT: Creates companies, users, the ticket catalog, tickets with their
comments, attachments and form data, and system settings.

WHY: ticket_number and setting_key carry unique constraints; ticket number
allocation relies on the former to reject concurrent duplicates.
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None

# Enum columns store member names
plan_type = sa.Enum("FREE", "BASIC", "PREMIUM", "ENTERPRISE", name="plantype")
ticket_status = sa.Enum("OPEN", "IN_PROGRESS", "RESOLVED", "CLOSED", name="ticketstatus")
ticket_priority = sa.Enum("LOW", "MEDIUM", "HIGH", "CRITICAL", name="ticketpriority")
form_field_type = sa.Enum(
    "TEXT", "TEXTAREA", "SELECT", "RADIO", "CHECKBOX", "EMAIL", "NUMBER", "DATE", "FILE",
    name="formfieldtype",
)
setting_data_type = sa.Enum("STRING", "BOOLEAN", "NUMBER", "JSON", name="settingdatatype")


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    """
    Create all helpdesk tables.

    Creates:
    - companies, users: tenants and accounts
    - ticket_types, ticket_categories, ticket_modules, ticket_form_fields: catalog
    - tickets, ticket_comments, ticket_attachments, ticket_form_data
    - system_settings
    """
    op.create_table(
        "companies",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("database_name", sa.String(50), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("email", sa.String(100), nullable=True),
        sa.Column("contact_person", sa.String(100), nullable=True),
        sa.Column("plan_type", plan_type, nullable=False, server_default="BASIC"),
        sa.Column("ticket_credits", sa.Integer(), nullable=False, server_default="100"),
        sa.Column("monthly_ticket_limit", sa.Integer(), nullable=False, server_default="50"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.UniqueConstraint("database_name", name="uq_companies_database_name"),
        sa.CheckConstraint("ticket_credits >= 0", name="ck_companies_ticket_credits_non_negative"),
        sa.CheckConstraint(
            "monthly_ticket_limit >= 1 AND monthly_ticket_limit <= 10000",
            name="ck_companies_monthly_ticket_limit_range",
        ),
    )
    op.create_index("ix_companies_id", "companies", ["id"])
    op.create_index("ix_companies_name", "companies", ["name"])

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("first_name", sa.String(50), nullable=False),
        sa.Column("last_name", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("roles", sa.JSON(), nullable=False),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_company_id", "users", ["company_id"])

    op.create_table(
        "ticket_types",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("icon", sa.String(50), nullable=False),
        sa.Column("color", sa.String(20), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_ticket_types_id", "ticket_types", ["id"])

    op.create_table(
        "ticket_categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("icon", sa.String(50), nullable=True),
        sa.Column("color", sa.String(20), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_ticket_categories_id", "ticket_categories", ["id"])

    op.create_table(
        "ticket_modules",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("ticket_categories.id"), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("icon", sa.String(50), nullable=True),
        sa.Column("color", sa.String(20), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_ticket_modules_id", "ticket_modules", ["id"])
    op.create_index("ix_ticket_modules_category_id", "ticket_modules", ["category_id"])

    op.create_table(
        "ticket_form_fields",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("ticket_type_id", sa.Integer(), sa.ForeignKey("ticket_types.id"), nullable=False),
        sa.Column("field_name", sa.String(100), nullable=False),
        sa.Column("display_name", sa.String(200), nullable=False),
        sa.Column("field_type", form_field_type, nullable=False, server_default="TEXT"),
        sa.Column("default_value", sa.String(500), nullable=True),
        sa.Column("placeholder_text", sa.String(200), nullable=True),
        sa.Column("help_text", sa.String(500), nullable=True),
        sa.Column("is_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("min_length", sa.Integer(), nullable=True),
        sa.Column("max_length", sa.Integer(), nullable=True),
        sa.Column("validation_rules", sa.Text(), nullable=True),
        sa.Column("options", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_ticket_form_fields_id", "ticket_form_fields", ["id"])
    op.create_index("ix_ticket_form_fields_ticket_type_id", "ticket_form_fields", ["ticket_type_id"])

    op.create_table(
        "tickets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("ticket_number", sa.String(20), nullable=False),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("created_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("assigned_to_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("ticket_type_id", sa.Integer(), sa.ForeignKey("ticket_types.id"), nullable=False),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("ticket_categories.id"), nullable=True),
        sa.Column("module_id", sa.Integer(), sa.ForeignKey("ticket_modules.id"), nullable=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("status", ticket_status, nullable=False, server_default="OPEN"),
        sa.Column("priority", ticket_priority, nullable=False, server_default="MEDIUM"),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        sa.Column("closed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.UniqueConstraint("ticket_number", name="uq_tickets_ticket_number"),
    )
    op.create_index("ix_tickets_company_id", "tickets", ["company_id"])
    op.create_index("ix_tickets_status", "tickets", ["status"])
    op.create_index("ix_tickets_assigned_to", "tickets", ["assigned_to_user_id"])
    op.create_index("ix_tickets_created_at", "tickets", ["created_at"])

    op.create_table(
        "ticket_comments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("ticket_id", sa.Integer(), sa.ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("comment", sa.Text(), nullable=False),
        sa.Column("is_internal", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_system_message", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_ticket_comments_ticket_id", "ticket_comments", ["ticket_id"])

    op.create_table(
        "ticket_attachments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("ticket_id", sa.Integer(), sa.ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False),
        sa.Column("uploaded_by_user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("storage_path", sa.String(500), nullable=False),
        sa.Column("content_type", sa.String(100), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_ticket_attachments_ticket_id", "ticket_attachments", ["ticket_id"])

    op.create_table(
        "ticket_form_data",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("ticket_id", sa.Integer(), sa.ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False),
        sa.Column("form_field_id", sa.Integer(), sa.ForeignKey("ticket_form_fields.id"), nullable=False),
        sa.Column("field_value", sa.Text(), nullable=True),
    )
    op.create_index("ix_ticket_form_data_ticket_id", "ticket_form_data", ["ticket_id"])

    op.create_table(
        "system_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("setting_key", sa.String(100), nullable=False),
        sa.Column("setting_value", sa.Text(), nullable=False, server_default=""),
        sa.Column("data_type", setting_data_type, nullable=False, server_default="STRING"),
        sa.Column("display_name", sa.String(200), nullable=True),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("category", sa.String(50), nullable=False, server_default="General"),
        sa.Column("is_system_setting", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_visible", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("default_value", sa.Text(), nullable=True),
        sa.Column("validation_rules", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_system_settings_id", "system_settings", ["id"])
    op.create_index("ix_system_settings_setting_key", "system_settings", ["setting_key"], unique=True)


def downgrade() -> None:
    """Drop all helpdesk tables and enum types."""
    op.drop_table("system_settings")
    op.drop_table("ticket_form_data")
    op.drop_table("ticket_attachments")
    op.drop_table("ticket_comments")
    op.drop_table("tickets")
    op.drop_table("ticket_form_fields")
    op.drop_table("ticket_modules")
    op.drop_table("ticket_categories")
    op.drop_table("ticket_types")
    op.drop_table("users")
    op.drop_table("companies")

    for enum in (setting_data_type, form_field_type, ticket_priority, ticket_status, plan_type):
        enum.drop(op.get_bind(), checkfirst=True)
