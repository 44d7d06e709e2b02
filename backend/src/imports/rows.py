"""
Preparation of uploaded rows before reconciliation.

Sheet tabs and CSV files arrive with display headers ("Html Title",
"Meta Description"). Stored records use snake_case field keys, so headers
are normalized, the identifier column is mapped to ``id`` and bookkeeping
columns written by the export are dropped.
"""

import hashlib
import json
import re
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from src.imports.errors import InvalidInputError

ID_FIELD = "id"

# Columns written by the export itself; never compared
DEFAULT_IGNORED_HEADERS = ("Export Date", "Created At", "Updated At")

EMPTY_DATA_HASH = "empty"

_WHITESPACE = re.compile(r"\s+")


def normalize_header(header: str) -> str:
    """'Html Title' -> 'html_title'."""
    return _WHITESPACE.sub("_", str(header).strip()).lower()


def normalize_content_type(content_type: str) -> str:
    """'Landing Pages' or 'landing-pages' -> 'landing_pages'."""
    return _WHITESPACE.sub("_", content_type.replace("-", " ").strip()).lower()


def rows_from_sheet_values(values: Sequence[Sequence[Any]]) -> List[Dict[str, Any]]:
    """
    Convert a Sheets values grid into row dicts.

    The first row holds headers. Short rows are padded with '' and rows
    with no non-blank cell are dropped.
    """
    if not values:
        return []

    headers = [str(h) for h in values[0]]
    rows = []
    for raw in values[1:]:
        cells = list(raw) + [""] * (len(headers) - len(raw))
        if all(cell is None or str(cell).strip() == "" for cell in cells[:len(headers)]):
            continue
        rows.append({header: cells[i] for i, header in enumerate(headers)})
    return rows


def prepare_import_rows(
    rows: Iterable[Mapping[str, Any]],
    ignore: Iterable[str] = DEFAULT_IGNORED_HEADERS,
) -> List[Dict[str, Any]]:
    """
    Normalize headers to field keys, preserving column order.

    Raises:
        InvalidInputError: If a row is not a mapping
    """
    ignored = {normalize_header(h) for h in ignore}
    prepared = []
    for index, row in enumerate(rows):
        if not isinstance(row, Mapping):
            raise InvalidInputError(
                "Each import row must be an object",
                details={"row_index": index},
            )
        out: Dict[str, Any] = {}
        for header, value in row.items():
            key = normalize_header(header)
            if key in ignored:
                continue
            out[key] = value
        prepared.append(out)
    return prepared


def data_hash(rows: Sequence[Mapping[str, Any]]) -> str:
    """
    Stable fingerprint of a row set.

    Polling clients compare it with the previous value to skip change
    detection when a sheet has not been edited.
    """
    if not rows:
        return EMPTY_DATA_HASH
    payload = json.dumps(
        [list(row.items()) for row in rows],
        separators=(",", ":"),
        default=str,
    )
    digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
    return f"{len(rows)}_{digest}"
