"""
Schemas for the import change-detection API.

Row contents are left untyped: column sets differ per content type and
header configuration, and row shape is validated by the reconciliation
engine so malformed batches return the standard 400 error shape.
"""

from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field

from src.imports.reconcile import ReconcileResult


# =============================================================================
# Requests
# =============================================================================

class DetectChangesRequest(BaseModel):
    """Uploaded rows to compare against the latest export."""

    rows: List[Any] = Field(
        ...,
        description="Imported rows keyed by column header; each needs an Id column",
    )
    import_type: Literal["sheets", "csv"] = Field(
        default="sheets",
        description="Where the rows came from",
    )
    content_type: Optional[str] = Field(
        default=None,
        description="Content type of the export (required for CSV imports)",
    )


class SheetHashRequest(BaseModel):
    """Raw Sheets values grid: header row followed by data rows."""

    values: List[List[Any]] = Field(default_factory=list)


# =============================================================================
# Responses
# =============================================================================

class ChangeRecordResponse(BaseModel):
    item_id: str
    field: str
    old_value: str
    new_value: str


class ItemDiffResponse(BaseModel):
    item_id: str
    item_label: str
    is_new: bool
    changes: List[ChangeRecordResponse]


class ReconcileSummaryResponse(BaseModel):
    total_items: int
    items_with_changes: int
    total_changes: int


class DetectChangesResponse(BaseModel):
    success: bool = True
    diffs: List[ItemDiffResponse]
    summary: ReconcileSummaryResponse
    skipped_item_ids: List[str] = Field(default_factory=list)
    backup_id: Optional[str] = None


class SheetHashResponse(BaseModel):
    data_hash: str
    row_count: int


def to_detect_changes_response(
    result: ReconcileResult,
    backup_id: Optional[str] = None,
) -> DetectChangesResponse:
    """Convert an engine result into the API response model."""
    return DetectChangesResponse(
        diffs=[ItemDiffResponse(**diff.to_dict()) for diff in result.diffs],
        summary=ReconcileSummaryResponse(**result.summary.to_dict()),
        skipped_item_ids=result.skipped_item_ids,
        backup_id=backup_id,
    )
