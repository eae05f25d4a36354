"""Initial schema: users, subjects, notes, engagement, admin activity

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

Creates every table of the note engine. Subject seeding and counter
reconciliation are runtime concerns handled by notarium.database.init_schema.

Rollback: downgrade() drops all tables (destructive).
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(*, updated: bool = False):
    columns = [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        )
    ]
    if updated:
        columns.append(
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                server_default=sa.text("CURRENT_TIMESTAMP"),
                nullable=False,
            )
        )
    return columns


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("external_id", sa.String(255), nullable=True),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("class", sa.String(20), nullable=True),
        sa.Column("role", sa.String(20), server_default=sa.text("'student'"), nullable=False),
        sa.Column("notes_uploaded", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("total_likes", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column(
            "total_admin_upvotes", sa.Integer(), server_default=sa.text("0"), nullable=False
        ),
        *_timestamps(updated=True),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("external_id", name="uq_users_external_id"),
    )

    op.create_table(
        "subjects",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("icon", sa.String(16), server_default=sa.text("''"), nullable=False),
        sa.Column("note_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_subjects"),
        sa.UniqueConstraint("name", name="uq_subjects_name"),
    )

    op.create_table(
        "notes",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("extracted_text", sa.Text(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("images", sa.JSON(), nullable=False),
        sa.Column("subject_id", sa.Integer(), nullable=False),
        sa.Column("author_id", sa.Integer(), nullable=False),
        sa.Column("author_class", sa.String(20), nullable=True),
        # Legacy rows may hold NULL or '' here; both read as published / everyone.
        sa.Column("status", sa.String(20), server_default=sa.text("'published'"), nullable=True),
        sa.Column(
            "visibility", sa.String(20), server_default=sa.text("'everyone'"), nullable=True
        ),
        sa.Column("scheduled_publish_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("parent_note_id", sa.Integer(), nullable=True),
        sa.Column("part_number", sa.Integer(), nullable=True),
        sa.Column("likes", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("admin_upvotes", sa.Integer(), server_default=sa.text("0"), nullable=False),
        *_timestamps(updated=True),
        sa.PrimaryKeyConstraint("id", name="pk_notes"),
        sa.ForeignKeyConstraint(["subject_id"], ["subjects.id"], name="fk_notes_subject"),
        sa.ForeignKeyConstraint(["author_id"], ["users.id"], name="fk_notes_author"),
        sa.ForeignKeyConstraint(
            ["parent_note_id"], ["notes.id"], name="fk_notes_parent", ondelete="SET NULL"
        ),
        sa.CheckConstraint("likes >= 0", name="ck_notes_likes_non_negative"),
        sa.CheckConstraint("admin_upvotes >= 0", name="ck_notes_admin_upvotes_non_negative"),
    )
    op.create_index("idx_notes_subject_id", "notes", ["subject_id"])
    op.create_index("idx_notes_author_id", "notes", ["author_id"])
    op.create_index("idx_notes_parent_note_id", "notes", ["parent_note_id"])
    op.create_index("idx_notes_created_at", "notes", [sa.text("created_at DESC")])

    op.create_table(
        "note_likes",
        sa.Column("note_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("note_id", "user_id", name="pk_note_likes"),
        sa.ForeignKeyConstraint(["note_id"], ["notes.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_note_likes_user_id", "note_likes", ["user_id"])

    op.create_table(
        "admin_note_likes",
        sa.Column("note_id", sa.Integer(), nullable=False),
        sa.Column("admin_id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("note_id", "admin_id", name="pk_admin_note_likes"),
        sa.ForeignKeyConstraint(["note_id"], ["notes.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["admin_id"], ["users.id"], ondelete="CASCADE"),
    )

    op.create_table(
        "admin_activity_log",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("admin_id", sa.Integer(), nullable=True),
        sa.Column("action_type", sa.String(50), nullable=False),
        sa.Column("target_type", sa.String(50), nullable=False),
        sa.Column("target_id", sa.Integer(), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_admin_activity_log"),
        sa.ForeignKeyConstraint(["admin_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index(
        "idx_admin_activity_created_at", "admin_activity_log", [sa.text("created_at DESC")]
    )


def downgrade() -> None:
    op.drop_index("idx_admin_activity_created_at", table_name="admin_activity_log")
    op.drop_table("admin_activity_log")
    op.drop_table("admin_note_likes")
    op.drop_index("idx_note_likes_user_id", table_name="note_likes")
    op.drop_table("note_likes")
    op.drop_index("idx_notes_created_at", table_name="notes")
    op.drop_index("idx_notes_parent_note_id", table_name="notes")
    op.drop_index("idx_notes_author_id", table_name="notes")
    op.drop_index("idx_notes_subject_id", table_name="notes")
    op.drop_table("notes")
    op.drop_table("subjects")
    op.drop_table("users")
