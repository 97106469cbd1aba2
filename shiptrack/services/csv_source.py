"""Reader for the shipment CSV export.

Maps the export's column headers onto ImportRow field names. Cells are
stripped; blank lines and rows with only empty cells are skipped. Rows are
returned unvalidated so that each one fails or succeeds on its own during
import.
"""

import csv
import logging
from pathlib import Path

from shiptrack.errors.domain import ImportSourceError

logger = logging.getLogger(__name__)

COLUMN_MAP = {
    "Order ID": "order_id",
    "Tracking Details": "tracking_id",
    "Status Updates": "status_updates",
    "Delivery Location": "address",
    "ETA": "estimated_delivery",
}

REQUIRED_COLUMNS = ("Tracking Details",)

# "12/03/2024 - 15/03/2024" windows keep only the first date.
ETA_SEPARATOR = " - "


def _clean_eta(value: str | None) -> str | None:
    if not value:
        return None
    return value.split(ETA_SEPARATOR)[0].strip() or None


def map_csv_record(record: dict[str, str | None]) -> dict[str, str | None]:
    """Translate one DictReader record into ImportRow field names."""
    row = {
        field_name: (record.get(header) or "").strip() or None
        for header, field_name in COLUMN_MAP.items()
    }
    row["estimated_delivery"] = _clean_eta(row["estimated_delivery"])
    return row


def read_shipment_csv(path: str | Path) -> list[dict[str, str | None]]:
    """Read every data row of a shipment export.

    Args:
        path: CSV file with a header line.

    Returns:
        Row dicts keyed by order_id, tracking_id, status_updates, address
        and estimated_delivery (None for empty cells).

    Raises:
        ImportSourceError: If the file cannot be read or lacks the
            tracking column.
    """
    try:
        with open(path, newline="", encoding="utf-8-sig") as f:
            reader = csv.DictReader(f)
            headers = [h.strip() for h in reader.fieldnames or []]
            missing = [c for c in REQUIRED_COLUMNS if c not in headers]
            if missing:
                raise ImportSourceError(
                    f"{path} is missing column(s): {', '.join(missing)}"
                )
            reader.fieldnames = headers
            rows = [
                map_csv_record(record)
                for record in reader
                if any((v or "").strip() for v in record.values() if isinstance(v, str))
            ]
    except OSError as e:
        raise ImportSourceError(f"Cannot read {path}: {e}") from e
    except (csv.Error, UnicodeDecodeError) as e:
        raise ImportSourceError(f"{path} is not valid CSV: {e}") from e

    logger.info("Read %d row(s) from %s", len(rows), path)
    return rows
