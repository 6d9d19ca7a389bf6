"""SQLAlchemy table definitions read and written by the Search Index Service.

``documents``, ``chunks`` and ``group_memberships`` belong to the document
system of record; this service only reads them. ``search_index_outbox`` is
owned here.
"""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()

documents = Table(
    "documents",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("tenant_id", String(36), nullable=False),
    Column("title", String(512), nullable=False, default=""),
    Column("allowed_groups", JSON, nullable=False, default=list),
    Column("deleted_at", DateTime(timezone=True), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Index("ix_documents_tenant_id", "tenant_id"),
)

chunks = Table(
    "chunks",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("tenant_id", String(36), nullable=False),
    Column(
        "document_id",
        String(36),
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("chunk_text", Text, nullable=False),
    Column("token_count", Integer, nullable=False, default=0),
    Column("chunk_order", Integer, nullable=False, default=0),
    Column("created_at", DateTime(timezone=True), nullable=True),
    Index("ix_chunks_tenant_id", "tenant_id"),
    Index("ix_chunks_document_id_chunk_order", "document_id", "chunk_order"),
)

group_memberships = Table(
    "group_memberships",
    metadata,
    Column("tenant_id", String(36), nullable=False),
    Column("principal", String(256), nullable=False),
    Column("group_id", String(128), nullable=False),
    UniqueConstraint(
        "tenant_id", "principal", "group_id", name="uq_group_memberships_member"
    ),
)

outbox_events = Table(
    "search_index_outbox",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("tenant_id", String(36), nullable=False),
    Column("entity_type", String(64), nullable=False),
    Column("entity_id", String(36), nullable=False),
    Column("action", String(32), nullable=False),
    Column("payload", Text, nullable=False, default="{}"),
    Column("retry_count", Integer, nullable=False, default=0),
    Column("max_retries", Integer, nullable=False, default=5),
    Column("next_retry_at", DateTime(timezone=True), nullable=True),
    Column("dead_lettered", Boolean, nullable=False, default=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("processed_at", DateTime(timezone=True), nullable=True),
    CheckConstraint("retry_count >= 0", name="ck_search_index_outbox_retry_count"),
    CheckConstraint("max_retries > 0", name="ck_search_index_outbox_max_retries"),
    Index(
        "ix_search_index_outbox_pending",
        "processed_at",
        "dead_lettered",
        "created_at",
    ),
)
