"""create timetable core tables

Revision ID: 20261018_0001
Revises: None
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "teachers",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=False, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("global_permissions", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_teachers_email", "teachers", ["email"], unique=True)

    op.create_table(
        "organisations",
        sa.Column("organisation_id", sa.String(length=100), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("admin_ref", sa.String(length=255), nullable=False),
        sa.Column("days_count", sa.Integer(), nullable=False, server_default=sa.text("5")),
        sa.Column("period_count", sa.Integer(), nullable=False, server_default=sa.text("8")),
        sa.Column("teacher_ids", sa.JSON(), nullable=False),
        sa.Column("classrooms", sa.JSON(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_organisations_admin_ref", "organisations", ["admin_ref"])

    op.create_table(
        "teacher_memberships",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "teacher_id",
            sa.Integer(),
            sa.ForeignKey("teachers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "organisation_id",
            sa.String(length=100),
            sa.ForeignKey("organisations.organisation_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("subjects", sa.JSON(), nullable=False),
        sa.Column("classes", sa.JSON(), nullable=False),
        sa.Column("permissions", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("teacher_id", "organisation_id", name="uq_teacher_membership_org"),
    )
    op.create_index("ix_teacher_memberships_teacher_id", "teacher_memberships", ["teacher_id"])
    op.create_index("ix_teacher_memberships_organisation_id", "teacher_memberships", ["organisation_id"])

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("organisation_id", sa.String(length=100), nullable=True),
        sa.Column("teacher_id", sa.Integer(), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=100), nullable=True),
        sa.Column("entity_id", sa.String(length=100), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_activity_logs_organisation_id", "activity_logs", ["organisation_id"])


def downgrade() -> None:
    op.drop_index("ix_activity_logs_organisation_id", table_name="activity_logs")
    op.drop_table("activity_logs")
    op.drop_index("ix_teacher_memberships_organisation_id", table_name="teacher_memberships")
    op.drop_index("ix_teacher_memberships_teacher_id", table_name="teacher_memberships")
    op.drop_table("teacher_memberships")
    op.drop_index("ix_organisations_admin_ref", table_name="organisations")
    op.drop_table("organisations")
    op.drop_index("ix_teachers_email", table_name="teachers")
    op.drop_table("teachers")
