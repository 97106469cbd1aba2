"""Tokenizer for the semi-structured "status updates" export field.

A raw field holds zero or more pipe-separated entries. Each entry is a
whitespace-separated token run: a status keyword, optional location text,
and an embedded ``D/M/YYYY`` date that may be followed by a time or other
trailing text::

    picked_up Warehouse-A 1/2/2024 | intransit Hub-B 3/2/2024 10:30

Parsing never raises. Garbage produces weaker events (null location or
timestamp), never errors. Timestamp strings stay raw here; they are turned
into datetimes by ``parse_event_timestamp`` when history is merged.

Example:
    for event in parse_status_updates(row.status_updates):
        print(event.status_type, event.location, event.timestamp)
"""

import logging
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import UTC, datetime

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

ENTRY_SEPARATOR = "|"

# 1-2 digit day and month, 4-digit year. Searched within a token so that
# punctuation around the date does not hide it.
DATE_TOKEN_PATTERN = re.compile(r"\d{1,2}/\d{1,2}/\d{4}")


@dataclass(frozen=True)
class StatusEvent:
    """One structured event parsed from a status-updates entry."""

    status_type: str
    """First token of the entry, as written in the source."""

    location: str | None = None
    """Tokens between the status and the date, joined with spaces."""

    timestamp: str | None = None
    """Raw text from the first date-like token to the end of the entry."""


def parse_status_entry(entry: str) -> StatusEvent | None:
    """Parse one pipe-delimited entry.

    Args:
        entry: A single entry, e.g. ``"intransit Hub B 3/2/2024"``.

    Returns:
        StatusEvent, or None when the entry holds no tokens.
    """
    tokens = entry.split()
    if not tokens:
        return None

    status_type, rest = tokens[0], tokens[1:]
    date_idx = next(
        (i for i, token in enumerate(rest) if DATE_TOKEN_PATTERN.search(token)),
        None,
    )
    if date_idx is None:
        location_tokens, timestamp = rest, None
    else:
        location_tokens, timestamp = rest[:date_idx], " ".join(rest[date_idx:])

    return StatusEvent(
        status_type=status_type,
        location=" ".join(location_tokens) or None,
        timestamp=timestamp,
    )


def iter_status_events(raw: str | None) -> Iterator[StatusEvent]:
    """Lazily yield events from a raw field, left to right.

    Args:
        raw: The raw "status updates" value. None yields nothing.

    Yields:
        StatusEvent for every non-empty entry.
    """
    if not raw:
        return
    for entry in raw.split(ENTRY_SEPARATOR):
        event = parse_status_entry(entry)
        if event is not None:
            yield event


class StatusEventSequence:
    """Restartable view over the events of one raw field.

    Tokenizing happens on iteration; every ``iter()`` starts from the first
    entry again.
    """

    def __init__(self, raw: str | None) -> None:
        self.raw = raw

    def __iter__(self) -> Iterator[StatusEvent]:
        return iter_status_events(self.raw)

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __bool__(self) -> bool:
        return next(iter(self), None) is not None

    def __repr__(self) -> str:
        return f"<StatusEventSequence(raw={self.raw!r})>"


def parse_status_updates(raw: str | None) -> StatusEventSequence:
    """Return the restartable event sequence for a raw field."""
    return StatusEventSequence(raw)


def format_status_events(events: Iterable[StatusEvent]) -> str:
    """Serialize events back to the pipe-delimited field shape.

    Args:
        events: Events as produced by the tokenizer.

    Returns:
        Entries of ``status location date`` joined by `` | ``.
    """
    entries = []
    for event in events:
        parts = [event.status_type, event.location, event.timestamp]
        entries.append(" ".join(p for p in parts if p))
    return f" {ENTRY_SEPARATOR} ".join(entries)


def parse_event_timestamp(
    raw: str | None, dayfirst: bool = True
) -> datetime | None:
    """Best-effort conversion of a raw timestamp string.

    ISO-8601 input is taken as-is. Anything else goes through dateutil,
    whole string first (date plus time), then only the leading date token
    so trailing garbage does not lose the date.

    Args:
        raw: Raw timestamp text from a StatusEvent or an update request.
        dayfirst: Read ``1/2/2024`` as 1 February (export convention).

    Returns:
        Timezone-aware datetime (naive values are taken as UTC), or None
        when nothing parses.
    """
    if not raw or not raw.strip():
        return None

    try:
        parsed = datetime.fromisoformat(raw.strip())
    except ValueError:
        pass
    else:
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)

    candidates = [raw]
    match = DATE_TOKEN_PATTERN.search(raw)
    if match and match.group(0) != raw.strip():
        candidates.append(match.group(0))

    for candidate in candidates:
        try:
            parsed = date_parser.parse(candidate, dayfirst=dayfirst)
        except (ValueError, OverflowError):
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return parsed

    logger.debug("Unparseable status timestamp %r", raw)
    return None


def to_iso_timestamp(value: datetime) -> str:
    """Canonical stored form of an event time (UTC, ISO8601)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()
