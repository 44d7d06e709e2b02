"""
Import reconciliation: diff uploaded CSV/sheet rows against exported snapshots.
"""

from src.imports.errors import InvalidInputError, NoBackupFoundError
from src.imports.record_store import RecordStore, SnapshotRecordStore
from src.imports.reconcile import (
    ChangeRecord,
    ItemDiff,
    ReconcileSummary,
    ReconcileResult,
    ImportReconciliationEngine,
    normalize_value,
    validate_rows,
)
from src.imports.rows import (
    normalize_header,
    normalize_content_type,
    rows_from_sheet_values,
    prepare_import_rows,
    data_hash,
)

__all__ = [
    "InvalidInputError",
    "NoBackupFoundError",
    "RecordStore",
    "SnapshotRecordStore",
    "ChangeRecord",
    "ItemDiff",
    "ReconcileSummary",
    "ReconcileResult",
    "ImportReconciliationEngine",
    "normalize_value",
    "validate_rows",
    "normalize_header",
    "normalize_content_type",
    "rows_from_sheet_values",
    "prepare_import_rows",
    "data_hash",
]
