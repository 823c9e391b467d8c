"""
CSV export of submission listings for the dashboard download buttons.
"""
import csv
import io
from typing import Any, Dict, Iterable, Sequence


def to_csv(records: Iterable[Dict[str, Any]], columns: Sequence[str]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=list(columns), extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    for record in records:
        writer.writerow({c: "" if record.get(c) is None else record.get(c) for c in columns})
    return buffer.getvalue()


def export_filename(kind: str, stamp: str) -> str:
    return f"{kind}_{stamp[:10]}.csv"
