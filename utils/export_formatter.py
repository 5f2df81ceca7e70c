"""
CSV and JSON rendering for admin data exports.
"""
import csv
import io
import json
from datetime import datetime
from typing import Iterable, List


def export_value(value) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return "; ".join(str(item) for item in value)
    return str(value)


def to_csv(rows: List[dict], headers: Iterable[str]) -> str:
    """Header line plus one line per row; every field is quoted and inner quotes doubled."""
    headers = list(headers)
    output = io.StringIO()
    csv.writer(output, lineterminator="\n").writerow(headers)
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for row in rows:
        writer.writerow([export_value(row.get(h)) for h in headers])
    return output.getvalue()[:-1]


def to_json(rows: List[dict]) -> str:
    return json.dumps(rows, indent=2, default=export_value)


def format_export(rows: List[dict], headers: Iterable[str], format: str) -> dict:
    data = to_csv(rows, headers) if format == "csv" else to_json(rows)
    return {"data": data, "count": len(rows), "format": format}
