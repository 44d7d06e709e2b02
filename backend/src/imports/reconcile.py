"""
Import reconciliation engine.

Compares an uploaded row set (CSV file or sheet tab) against the stored
record of each item and produces a field-level change set for review and
selective application.

Rules:
- Every row must carry an ``id``; an empty batch is rejected
- Items missing from the record store are new: one synthetic
  ``status -> NEW_ITEM`` change, never a field diff
- Empty or None incoming values mean "no change requested", so a
  partial-column import never blanks a stored field
- Values are normalized to strings before comparison (5 == "5")
- Change order follows the imported row's column order
- Rows with no changes are left out of the result
- A failed lookup for one row is logged and the row skipped; the batch
  continues

Usage:
    engine = ImportReconciliationEngine(SnapshotRecordStore(db_session))
    result = engine.reconcile(user_id, rows)
    for diff in result.diffs:
        ...
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence

from src.imports.errors import InvalidInputError
from src.imports.record_store import RecordStore
from src.imports.rows import ID_FIELD

logger = logging.getLogger(__name__)

NEW_ITEM_FIELD = "status"
NEW_ITEM_VALUE = "NEW_ITEM"


@dataclass(frozen=True)
class ChangeRecord:
    """One detected field difference."""
    item_id: str
    field: str
    old_value: str
    new_value: str

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "field": self.field,
            "old_value": self.old_value,
            "new_value": self.new_value,
        }


@dataclass
class ItemDiff:
    """All changes for one imported item."""
    item_id: str
    item_label: str
    changes: List[ChangeRecord] = field(default_factory=list)
    is_new: bool = False

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "item_label": self.item_label,
            "is_new": self.is_new,
            "changes": [change.to_dict() for change in self.changes],
        }


@dataclass(frozen=True)
class ReconcileSummary:
    total_items: int
    items_with_changes: int
    total_changes: int

    def to_dict(self) -> dict:
        return {
            "total_items": self.total_items,
            "items_with_changes": self.items_with_changes,
            "total_changes": self.total_changes,
        }


@dataclass
class ReconcileResult:
    diffs: List[ItemDiff]
    summary: ReconcileSummary
    skipped_item_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "diffs": [diff.to_dict() for diff in self.diffs],
            "summary": self.summary.to_dict(),
            "skipped_item_ids": list(self.skipped_item_ids),
        }


def is_no_change(value: Any) -> bool:
    """Incoming None or '' means the field is not being changed."""
    return value is None or value == ""


def normalize_value(value: Any) -> str:
    """
    Normalize a value to the string form used for comparison and display.

    None -> '', booleans -> 'true'/'false', lists and dicts -> compact JSON
    with sorted keys, everything else -> str().
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)
    return str(value)


def validate_rows(rows: Any) -> None:
    """
    Reject batches that are not a non-empty list of objects with ids.

    Raises:
        InvalidInputError: Describing the first problem found
    """
    if rows is None or isinstance(rows, (str, bytes, Mapping)) or not isinstance(rows, Sequence):
        raise InvalidInputError("Import rows must be a list of objects")
    if len(rows) == 0:
        raise InvalidInputError("Import rows must not be empty")

    for index, row in enumerate(rows):
        if not isinstance(row, Mapping):
            raise InvalidInputError(
                "Each import row must be an object",
                details={"row_index": index},
            )
        if is_no_change(row.get(ID_FIELD)):
            raise InvalidInputError(
                "Each import row must contain an id",
                details={"row_index": index},
            )


class ImportReconciliationEngine:
    """Diffs imported rows against a RecordStore."""

    def __init__(self, record_store: RecordStore):
        self.record_store = record_store

    def reconcile(self, user_id: str, rows: Sequence[Mapping[str, Any]]) -> ReconcileResult:
        """
        Compute per-item changes for an imported batch.

        Raises:
            InvalidInputError: If rows is empty or any row lacks an id
        """
        validate_rows(rows)

        diffs: List[ItemDiff] = []
        skipped: List[str] = []

        for row in rows:
            item_id = normalize_value(row[ID_FIELD])
            try:
                existing = self.record_store.get(user_id, item_id)
            except Exception as e:
                logger.warning(
                    "RowLookupFailed",
                    extra={
                        "user_id": user_id,
                        "item_id": item_id,
                        "error_type": type(e).__name__,
                        "error": str(e),
                    },
                )
                skipped.append(item_id)
                continue

            diff = self._diff_row(item_id, row, existing)
            if diff is not None:
                diffs.append(diff)

        summary = ReconcileSummary(
            total_items=len(rows),
            items_with_changes=len(diffs),
            total_changes=sum(len(diff.changes) for diff in diffs),
        )

        logger.info(
            "Import reconciliation complete",
            extra={
                "user_id": user_id,
                "total_items": summary.total_items,
                "items_with_changes": summary.items_with_changes,
                "total_changes": summary.total_changes,
                "skipped_items": len(skipped),
            },
        )

        return ReconcileResult(diffs=diffs, summary=summary, skipped_item_ids=skipped)

    def _diff_row(
        self,
        item_id: str,
        row: Mapping[str, Any],
        existing: Optional[Mapping[str, Any]],
    ) -> Optional[ItemDiff]:
        if existing is None:
            return ItemDiff(
                item_id=item_id,
                item_label=_item_label(item_id, row, None),
                changes=[ChangeRecord(
                    item_id=item_id,
                    field=NEW_ITEM_FIELD,
                    old_value="",
                    new_value=NEW_ITEM_VALUE,
                )],
                is_new=True,
            )

        changes = []
        for field_name, incoming in row.items():
            if field_name == ID_FIELD or is_no_change(incoming):
                continue

            old_value = normalize_value(existing.get(field_name))
            new_value = normalize_value(incoming)
            if old_value != new_value:
                changes.append(ChangeRecord(
                    item_id=item_id,
                    field=field_name,
                    old_value=old_value,
                    new_value=new_value,
                ))

        if not changes:
            return None

        return ItemDiff(
            item_id=item_id,
            item_label=_item_label(item_id, row, existing),
            changes=changes,
        )


def _item_label(
    item_id: str,
    row: Mapping[str, Any],
    existing: Optional[Mapping[str, Any]],
) -> str:
    for source in (row, existing or {}):
        name = source.get("name")
        if not is_no_change(name):
            return normalize_value(name)
    return item_id
