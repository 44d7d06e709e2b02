"""
Import reconciliation errors.

- InvalidInputError: malformed reconciliation request (empty batch, row
  without id). Fails the whole batch.
- NoBackupFoundError: nothing has been exported yet for the user, so there
  is no record to compare against.

Per-row lookup failures are not exceptions at this level: the engine logs
them as RowLookupFailed events and skips the row.
"""

from typing import Any, Optional

from fastapi import status

from src.platform.errors import AppError, ValidationError


class InvalidInputError(ValidationError):
    """Malformed reconciliation request (400)."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message=message, details=details)


class NoBackupFoundError(AppError):
    """No exported snapshot exists to compare against (404)."""

    def __init__(self, content_type: Optional[str] = None):
        self.content_type = content_type
        if content_type:
            message = (
                f'No database backup found for content type "{content_type}". '
                "Please export your data first."
            )
        else:
            message = "No database backup found. Please export your data first."
        super().__init__(
            code="NO_BACKUP_FOUND",
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"content_type": content_type} if content_type else {},
        )
