"""
Writers for the consolidated result: the JSON document and its CSV export.
"""

import csv
import json
from pathlib import Path
from typing import Union

import structlog

from rollscan.core.exceptions import StorageError
from rollscan.core.schemas import AggregateResult

logger = structlog.get_logger(__name__)

CSV_HEADER = ["ID", "Name", "Father/Husband Name", "Address", "Age", "Gender"]
CSV_FIELDS = ["voter_id", "name", "father_husband_name", "address", "age", "gender"]


def write_aggregate(result: AggregateResult, path: Union[str, Path]) -> Path:
    """
    Write the consolidated result as UTF-8 JSON.

    Args:
        result: Aggregate produced by the run
        path: Destination file; parent directories are created

    Returns:
        The written path
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(result.model_dump(mode="json"), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
    except OSError as e:
        raise StorageError(
            message=f"Failed to write output {path}",
            store_type="output",
            operation="write",
            cause=e,
        )

    logger.info("Output written", path=str(path), total_records=result.total_records)
    return path


def export_csv(json_path: Union[str, Path], csv_path: Union[str, Path]) -> int:
    """
    Convert a consolidated JSON result into a CSV table of voters.

    Nothing is written when the input is unreadable or has no records.

    Returns:
        Number of rows written
    """
    json_path = Path(json_path)
    try:
        data = json.loads(json_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Cannot read result for CSV export", path=str(json_path), error=str(e))
        return 0

    records = data.get("records") if isinstance(data, dict) else None
    if not isinstance(records, list) or not records:
        logger.warning("No records to export", path=str(json_path))
        return 0

    csv_path = Path(csv_path)
    try:
        csv_path.parent.mkdir(parents=True, exist_ok=True)
        with open(csv_path, "w", encoding="utf-8", newline="") as f:
            writer = csv.writer(f, quoting=csv.QUOTE_ALL)
            writer.writerow(CSV_HEADER)
            for record in records:
                writer.writerow([record.get(field) or "" for field in CSV_FIELDS])
    except OSError as e:
        raise StorageError(
            message=f"Failed to write CSV {csv_path}",
            store_type="output",
            operation="export_csv",
            cause=e,
        )

    logger.info("CSV created", path=str(csv_path), rows=len(records))
    return len(records)
