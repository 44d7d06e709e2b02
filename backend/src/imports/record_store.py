"""
Read access to the system's copy of each content item.

RecordStore is the seam used by the reconciliation engine.
SnapshotRecordStore reads page_snapshots rows from the user's most recent
export batch:
- CSV imports compare against the latest ``csv_{content_type}_*`` batch
- Sheet imports compare against the latest non-CSV batch

The latest backup id is cached per (user, content type) so a batch of
row lookups does not repeat the same ordering query.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, Mapping, Optional

from sqlalchemy.orm import Session

from src.cache.ttl_cache import TTLCache
from src.config.settings import DEFAULT_SNAPSHOT_CACHE_TTL_SECONDS
from src.imports.rows import normalize_content_type
from src.models.page_snapshot import PageSnapshot

logger = logging.getLogger(__name__)

CSV_BACKUP_PREFIX = "csv_"


class RecordStore(ABC):
    """Canonical item lookup, scoped to a user."""

    @abstractmethod
    def get(self, user_id: str, item_id: str) -> Optional[Mapping[str, Any]]:
        """Return the item's fields, or None if the item is unknown."""

    def get_many(self, user_id: str, item_ids: Iterable[str]) -> Dict[str, Mapping[str, Any]]:
        """Fetch several items; unknown ids are left out of the result."""
        found = {}
        for item_id in item_ids:
            record = self.get(user_id, item_id)
            if record is not None:
                found[str(item_id)] = record
        return found


class SnapshotRecordStore(RecordStore):
    """RecordStore over the page_snapshots table."""

    def __init__(
        self,
        db_session: Session,
        content_type: Optional[str] = None,
        cache: Optional[TTLCache] = None,
        cache_ttl_seconds: int = DEFAULT_SNAPSHOT_CACHE_TTL_SECONDS,
    ):
        self.db = db_session
        self.content_type = normalize_content_type(content_type) if content_type else None
        self.cache = cache if cache is not None else TTLCache()
        self.cache_ttl_seconds = cache_ttl_seconds

    def latest_backup_id(self, user_id: str) -> Optional[str]:
        """Most recent export batch id for this user and content type."""
        return self.cache.get_or_compute(
            ("latest_backup", user_id, self.content_type),
            self.cache_ttl_seconds,
            lambda: self._query_latest_backup_id(user_id),
        )

    def _query_latest_backup_id(self, user_id: str) -> Optional[str]:
        query = self.db.query(PageSnapshot.backup_id).filter(
            PageSnapshot.user_id == user_id,
        )
        if self.content_type:
            query = query.filter(
                PageSnapshot.backup_id.like(f"{CSV_BACKUP_PREFIX}{self.content_type}_%")
            )
        else:
            query = query.filter(~PageSnapshot.backup_id.like(f"{CSV_BACKUP_PREFIX}%"))

        row = query.order_by(PageSnapshot.created_at.desc()).first()
        backup_id = row[0] if row else None

        logger.debug(
            "Resolved latest backup",
            extra={
                "user_id": user_id,
                "content_type": self.content_type,
                "backup_id": backup_id,
            },
        )
        return backup_id

    def get(self, user_id: str, item_id: str) -> Optional[Mapping[str, Any]]:
        backup_id = self.latest_backup_id(user_id)
        if backup_id is None:
            return None

        snapshot = self.db.query(PageSnapshot).filter(
            PageSnapshot.user_id == user_id,
            PageSnapshot.backup_id == backup_id,
            PageSnapshot.hubspot_page_id == str(item_id),
        ).order_by(PageSnapshot.created_at.desc()).first()

        if snapshot is None:
            return None
        return snapshot.to_record()
