"""initial memobot schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from pgvector.sqlalchemy import Vector
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MEMORY_DOCUMENT = (
    "to_tsvector('english'::regconfig, "
    "coalesce(title, '') || ' ' || coalesce(summary, '') || ' ' || content)"
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    ]


def _id() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("gen_random_uuid()"),
    )


def _user_fk() -> sa.Column:
    return sa.Column(
        "user_id",
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    """Users, memories, tags, relationship graph, reminders and conversation tables."""
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    op.create_table(
        "users",
        _id(),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("display_name", sa.String(length=256), nullable=True),
        sa.Column("timezone", sa.String(length=64), nullable=True),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_deleted_at", "users", ["deleted_at"])

    op.create_table(
        "platform_links",
        _id(),
        _user_fk(),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column("external_user_id", sa.String(length=255), nullable=False),
        sa.Column("delivery_address", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "channel", "external_user_id", name="uq_platform_links_channel_external"
        ),
    )
    op.create_index("ix_platform_links_user_id", "platform_links", ["user_id"])

    op.create_table(
        "link_codes",
        _id(),
        _user_fk(),
        sa.Column("code", sa.String(length=6), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_link_codes_user_id", "link_codes", ["user_id"])
    op.create_index("ix_link_codes_code", "link_codes", ["code"])

    op.create_table(
        "memories",
        _id(),
        _user_fk(),
        sa.Column("title", sa.String(length=512), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("embedding", Vector(512), nullable=True),
        sa.Column("category_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column(
            "source_platform",
            sa.String(length=32),
            nullable=False,
            server_default="chat",
        ),
        sa.Column(
            "is_forwarded", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_memories_user_id", "memories", ["user_id"])
    op.create_index("ix_memories_deleted_at", "memories", ["deleted_at"])
    op.execute(
        f"CREATE INDEX ix_memories_document ON memories USING gin ({MEMORY_DOCUMENT})"
    )
    op.execute(
        "CREATE INDEX ix_memories_embedding ON memories "
        "USING hnsw (embedding vector_cosine_ops)"
    )

    op.create_table(
        "tags",
        _id(),
        _user_fk(),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("normalized_name", sa.String(length=128), nullable=False),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "name", name="uq_tags_user_name"),
    )
    op.create_index("ix_tags_user_id", "tags", ["user_id"])
    op.create_index("ix_tags_normalized_name", "tags", ["normalized_name"])

    op.create_table(
        "memory_tags",
        sa.Column(
            "memory_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("memories.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "tag_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("tags.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )
    op.create_index("ix_memory_tags_tag_id", "memory_tags", ["tag_id"])

    op.create_table(
        "memory_relationships",
        _id(),
        _user_fk(),
        sa.Column(
            "memory_a_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("memories.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "memory_b_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("memories.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "relationship_type",
            sa.String(length=16),
            nullable=False,
            server_default="auto",
        ),
        sa.Column("similarity_score", sa.Float(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint(
            "memory_a_id", "memory_b_id", name="uq_memory_relationships_pair"
        ),
        sa.CheckConstraint(
            "memory_a_id < memory_b_id", name="ck_memory_relationships_canonical"
        ),
    )
    op.create_index(
        "ix_memory_relationships_user_id", "memory_relationships", ["user_id"]
    )
    op.create_index(
        "ix_memory_relationships_memory_a_id", "memory_relationships", ["memory_a_id"]
    )
    op.create_index(
        "ix_memory_relationships_memory_b_id", "memory_relationships", ["memory_b_id"]
    )

    op.create_table(
        "reminders",
        _id(),
        _user_fk(),
        sa.Column(
            "memory_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("memories.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=512), nullable=False),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("remind_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "channels",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[\"email\"]'::jsonb"),
        ),
        sa.Column(
            "status", sa.String(length=16), nullable=False, server_default="pending"
        ),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_reminders_user_id", "reminders", ["user_id"])
    op.create_index("ix_reminders_memory_id", "reminders", ["memory_id"])
    op.create_index(
        "ix_reminders_status_remind_at", "reminders", ["status", "remind_at"]
    )

    op.create_table(
        "conversation_states",
        _id(),
        _user_fk(),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column("external_user_id", sa.String(length=255), nullable=True),
        sa.Column(
            "message_history",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("mode", sa.String(length=16), nullable=False, server_default="recall"),
        sa.Column("draft", postgresql.JSONB(), nullable=True),
        sa.Column(
            "pending_questions",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("last_memory_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column(
            "last_message_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_conversation_states_user_id", "conversation_states", ["user_id"]
    )
    op.create_index(
        "ix_conversation_states_deleted_at", "conversation_states", ["deleted_at"]
    )
    op.create_index(
        "uq_conversation_states_live",
        "conversation_states",
        ["user_id", "channel"],
        unique=True,
        postgresql_where=sa.text("deleted_at IS NULL"),
    )

    op.create_table(
        "conversation_events",
        _id(),
        sa.Column("direction", sa.String(length=16), nullable=False),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column("external_user_id", sa.String(length=255), nullable=False),
        sa.Column("message_id", sa.String(length=255), nullable=True),
        sa.Column("kind", sa.String(length=16), nullable=True),
        sa.Column("text", sa.Text(), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column("platform_message_id", sa.String(length=255), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_conversation_events_channel_external_user_created",
        "conversation_events",
        ["channel", "external_user_id", "created_at"],
    )


def downgrade() -> None:
    """Drop all memobot tables."""
    op.drop_table("conversation_events")
    op.drop_table("conversation_states")
    op.drop_table("reminders")
    op.drop_table("memory_relationships")
    op.drop_table("memory_tags")
    op.drop_table("tags")
    op.execute("DROP INDEX IF EXISTS ix_memories_embedding")
    op.execute("DROP INDEX IF EXISTS ix_memories_document")
    op.drop_table("memories")
    op.drop_table("link_codes")
    op.drop_table("platform_links")
    op.drop_table("users")
