"""
Import change-detection API.

Compares uploaded CSV or sheet rows against the user's latest export and
returns the per-item change set for review. Nothing is written back to
HubSpot here; applying changes is a separate step.

SECURITY: All routes require an authenticated user on the request.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from src.api.dependencies.services import get_current_user_id, get_snapshot_cache
from src.api.schemas.imports import (
    DetectChangesRequest,
    DetectChangesResponse,
    SheetHashRequest,
    SheetHashResponse,
    to_detect_changes_response,
)
from src.cache.ttl_cache import TTLCache
from src.config.settings import load_settings
from src.database.session import get_db_session
from src.imports.errors import InvalidInputError, NoBackupFoundError
from src.imports.reconcile import ImportReconciliationEngine, validate_rows
from src.imports.record_store import SnapshotRecordStore
from src.imports.rows import data_hash, prepare_import_rows, rows_from_sheet_values

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/import", tags=["import"])


@router.post(
    "/detect-changes",
    response_model=DetectChangesResponse,
)
async def detect_changes(
    body: DetectChangesRequest,
    user_id: str = Depends(get_current_user_id),
    db_session: Session = Depends(get_db_session),
    cache: TTLCache = Depends(get_snapshot_cache),
):
    """
    Diff uploaded rows against the latest export for the user.

    CSV imports are compared with the latest CSV export of the same
    content type; sheet imports with the latest sheet export.
    """
    if body.import_type == "csv" and not body.content_type:
        raise InvalidInputError("Missing required field: content_type for CSV import.")

    rows = prepare_import_rows(body.rows)
    validate_rows(rows)

    store = SnapshotRecordStore(
        db_session,
        content_type=body.content_type if body.import_type == "csv" else None,
        cache=cache,
        cache_ttl_seconds=load_settings().snapshot_cache_ttl_seconds,
    )
    backup_id = store.latest_backup_id(user_id)
    if backup_id is None:
        raise NoBackupFoundError(body.content_type)

    result = ImportReconciliationEngine(store).reconcile(user_id, rows)

    logger.info(
        "Detected import changes",
        extra={
            "user_id": user_id,
            "import_type": body.import_type,
            "backup_id": backup_id,
            "items_with_changes": result.summary.items_with_changes,
        },
    )

    return to_detect_changes_response(result, backup_id)


@router.post(
    "/sheet-hash",
    response_model=SheetHashResponse,
)
async def sheet_hash(
    body: SheetHashRequest,
    user_id: str = Depends(get_current_user_id),
):
    """
    Fingerprint a sheet's values so polling clients can skip unchanged tabs.
    """
    rows = rows_from_sheet_values(body.values)
    return SheetHashResponse(data_hash=data_hash(rows), row_count=len(rows))
