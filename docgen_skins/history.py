"""
Test-case history merging.

History arrives in one of two shapes:

* a list of ``{"createdDate", "createdBy", "text"}`` entries (work-item
  comments), or
* a legacy single string of blank-line separated blocks, each formatted
  ``"<date> - <author>: <html>"``.

Both are normalised to :class:`HistoryEntry`, HTML-stripped, rendered in a
fixed timezone and ordered newest first.  Entries with equal timestamps keep
their input order.

The legacy parser splits on the first ``" - "`` and the first ``": "`` of a
block, so author names containing those sequences are split wrongly.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

from .exceptions import DegradedDataWarning
from .html_utils import html_to_plain_text
from .models import HistoryEntry


logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Asia/Jerusalem"
DISPLAY_FORMAT = "%d/%m/%Y, %H:%M:%S"

_BLOCK_SEPARATOR = re.compile(r"\n\s*\n")
_FRACTION = re.compile(r"\.(\d+)(?=[+-]|$)")
_ANY_TAG = re.compile(r"<[^>]*>?")


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

def parse_date(value, tz_name: str = DEFAULT_TIMEZONE) -> datetime:
    """Parse an ISO-8601 (or already displayed) date into an aware datetime.

    Naive ISO values are taken as UTC; values in the display format are taken
    as local to *tz_name*.

    Raises:
        DegradedDataWarning: *value* is empty or not a recognised date.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not value or not str(value).strip():
        raise DegradedDataWarning("Empty date")

    text = str(value).strip()
    iso = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    iso = _FRACTION.sub(lambda m: "." + (m.group(1) + "000000")[:6], iso)
    try:
        parsed = datetime.fromisoformat(iso)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    except ValueError:
        pass
    try:
        return datetime.strptime(text, DISPLAY_FORMAT).replace(tzinfo=ZoneInfo(tz_name))
    except ValueError as e:
        raise DegradedDataWarning(f"Unparsable date {text!r}") from e


def to_timestamp(value, tz_name: str = DEFAULT_TIMEZONE) -> float:
    """POSIX timestamp of *value*, or 0 when it cannot be parsed."""
    try:
        return parse_date(value, tz_name).timestamp()
    except DegradedDataWarning:
        return 0.0


def format_local_time(value, tz_name: str = DEFAULT_TIMEZONE) -> str:
    """Render *value* as ``dd/mm/yyyy, HH:MM:SS`` in *tz_name*.

    Unparsable values fall back to the raw string; empty values render empty.
    """
    if not value:
        return ""
    try:
        return parse_date(value, tz_name).astimezone(ZoneInfo(tz_name)).strftime(DISPLAY_FORMAT)
    except DegradedDataWarning:
        logger.debug("Keeping raw history date %r", value)
        return str(value)


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------

def _parse_legacy_block(block: str) -> HistoryEntry:
    date, sep, rest = block.partition(" - ")
    if not sep:
        return HistoryEntry(text=block.strip())
    author, sep, text = rest.partition(": ")
    if not sep:
        return HistoryEntry(created_date=date.strip(), text=rest.strip())
    return HistoryEntry(created_date=date.strip(), created_by=author.strip(), text=text.strip())


def _entry_from_record(record) -> HistoryEntry:
    if isinstance(record, HistoryEntry):
        return record
    if isinstance(record, dict):
        created_by = record.get("createdBy", record.get("created_by")) or ""
        if isinstance(created_by, dict):
            created_by = created_by.get("displayName") or created_by.get("name") or ""
        return HistoryEntry(
            created_date=str(record.get("createdDate", record.get("created_date")) or ""),
            created_by=str(created_by),
            text=str(record.get("text") or ""),
        )
    return HistoryEntry(text=str(record or ""))


def normalize_history(raw: Union[list, str, None]) -> list[HistoryEntry]:
    """Normalise either history shape into entries, dropping empty ones."""
    if not raw:
        return []
    if isinstance(raw, str):
        entries = [_parse_legacy_block(b) for b in _BLOCK_SEPARATOR.split(raw) if b.strip()]
    else:
        entries = [_entry_from_record(r) for r in raw]
    return [e for e in entries if not e.is_empty()]


def _plain_text(text: str) -> str:
    try:
        return html_to_plain_text(text, preserve_line_breaks=True)
    except DegradedDataWarning as e:
        logger.warning("History text degraded: %s", e)
        return _ANY_TAG.sub("", text).strip()


def format_history_line(entry: HistoryEntry, tz_name: str = DEFAULT_TIMEZONE) -> Optional[str]:
    """Format one entry, or ``None`` when its text is empty."""
    text = _plain_text(entry.text)
    if not text:
        return None
    date = format_local_time(entry.created_date, tz_name)
    author = entry.created_by.strip()
    prefix = " - ".join(part for part in (date, author) if part)
    return f"{prefix}: {text}" if prefix else text


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------

def merge_history(raw: Union[list, str, None], tz_name: str = DEFAULT_TIMEZONE) -> list[str]:
    """Merge raw history into display lines, newest first.

    Ties on the timestamp keep input order; unparsable dates sort last.
    """
    keyed = []
    for index, entry in enumerate(normalize_history(raw)):
        line = format_history_line(entry, tz_name)
        if line is None:
            continue
        keyed.append((-to_timestamp(entry.created_date, tz_name), index, line))
    keyed.sort(key=lambda k: (k[0], k[1]))
    return [line for _, _, line in keyed]
