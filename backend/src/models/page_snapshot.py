"""
PageSnapshot model - the system's copy of a HubSpot content item.

Rows are written in batches by the export/backup flow; every batch shares
a backup_id. CSV exports use backup ids of the form
``csv_{content_type}_{timestamp}``; sheet exports use any other prefix.
"""

from sqlalchemy import Column, String, DateTime, Index, JSON

from src.db_base import Base
from src.models.base import generate_uuid, utcnow


class PageSnapshot(Base):
    """Snapshot of one content item taken during an export."""

    __tablename__ = "page_snapshots"

    id = Column(
        String(255),
        primary_key=True,
        default=generate_uuid,
        comment="Primary key (UUID)"
    )
    user_id = Column(
        String(255),
        nullable=False,
        comment="Owner of the export"
    )
    backup_id = Column(
        String(255),
        nullable=False,
        comment="Export batch identifier"
    )
    hubspot_page_id = Column(
        String(255),
        nullable=False,
        comment="HubSpot content item ID"
    )
    content_type = Column(
        String(100),
        nullable=True,
        comment="landing_pages, site_pages, blog_posts, ..."
    )
    name = Column(
        String(1024),
        nullable=True,
        comment="Item display name"
    )
    page_content = Column(
        JSON,
        nullable=True,
        comment="Exported field values keyed by field name"
    )
    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="When the snapshot row was written"
    )

    __table_args__ = (
        Index("ix_page_snapshots_user_backup", "user_id", "backup_id"),
        Index("ix_page_snapshots_user_created", "user_id", "created_at"),
        Index("ix_page_snapshots_user_page", "user_id", "hubspot_page_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<PageSnapshot("
            f"hubspot_page_id={self.hubspot_page_id}, "
            f"backup_id={self.backup_id})>"
        )

    def to_record(self) -> dict:
        """
        Flatten the snapshot into a single field mapping.

        page_content values take precedence over the top-level columns.
        """
        record = {
            "id": self.hubspot_page_id,
            "name": self.name,
            "content_type": self.content_type,
        }
        record.update(self.page_content or {})
        record["id"] = self.hubspot_page_id
        return record
