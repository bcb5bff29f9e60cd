"""
CSV export of conference registrations.
"""

import csv
from datetime import datetime, timezone
from typing import Iterable, Optional

import pandas as pd

from .models import Registration, timestamp_id

EMPTY_EXPORT = "No data available"
NOT_ATTENDED = "Not attended"
TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

COLUMNS = [
    "ID",
    "Conference ID",
    "Name",
    "Email",
    "Phone",
    "Registered Voter",
    "Referral Code",
    "Registration Time",
    "Attended At",
]


def _format_time(value: Optional[str]) -> str:
    if not value:
        return ""
    parsed = pd.to_datetime(value, utc=True, errors="coerce")
    if pd.isna(parsed):
        return value
    return parsed.strftime(TIME_FORMAT)


def _voter_label(value: Optional[bool]) -> str:
    if value is None:
        return ""
    return "Yes" if value else "No"


def registrations_to_csv(records: Iterable[Registration]) -> str:
    """
    Render registrations as CSV with every cell quoted.

    Returns:
        CSV text, or "No data available" when there are no records.
    """
    rows = [
        {
            "ID": r.id,
            "Conference ID": r.conference_id,
            "Name": r.name,
            "Email": r.email,
            "Phone": r.phone or "",
            "Registered Voter": _voter_label(r.is_registered_voter),
            "Referral Code": r.referral_code or "",
            "Registration Time": _format_time(r.timestamp),
            "Attended At": _format_time(r.attended_at) if r.attended_at else NOT_ATTENDED,
        }
        for r in records
    ]
    if not rows:
        return EMPTY_EXPORT

    df = pd.DataFrame(rows, columns=COLUMNS)
    return df.to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n").rstrip("\n")


def export_filename(conference_id: Optional[str] = None, now: Optional[datetime] = None) -> str:
    """registrations-{conference id or "all"}-{ms timestamp}.csv"""
    now = now or datetime.now(timezone.utc)
    return f"registrations-{conference_id or 'all'}-{timestamp_id(now)}.csv"
