"""
Deadline engine for evidence requests.

A request carries two independently tracked deadlines:
- a primary deadline as an ISO calendar date (``2025-10-15``)
- a secondary compact deadline as day-month-2digit-year (``15-10-25``)

Unparsable or out-of-range input is never an error; it means "no deadline"
and propagates as ``None`` through every calculation.
"""

from __future__ import annotations

import enum
import re
from datetime import date, datetime
from typing import Iterable, Optional

from evidence_bank.tracker.store import EvidenceRequest


# D[-/]M[-/]?YY with 1-2 digit day and month and exactly 2 digit year
COMPACT_DATE_PATTERN = re.compile(r"^(\d{1,2})[-/](\d{1,2})[-/]?(\d{2})$")

# YYYY-MM-DD, optionally followed by a time of day
CALENDAR_DATE_PATTERN = re.compile(r"^(\d{4}-\d{2}-\d{2})(?:[T ].*)?$")


class DeadlineChannel(enum.Enum):
    PRIMARY = "primary"
    COMPACT = "compact"


class Proximity(enum.Enum):
    NONE = "none"
    APPROACHING = "approaching"
    OVERDUE = "overdue"


def parse_calendar_date(value: Optional[str]) -> Optional[date]:
    """Parse an ISO calendar date (or datetime) string, dropping time of day."""
    if not value or not value.strip():
        return None
    text = value.strip()
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    match = CALENDAR_DATE_PATTERN.match(text)
    if match is None:
        return None
    try:
        return datetime.strptime(match.group(1), "%Y-%m-%d").date()
    except ValueError:
        return None


def parse_compact_date(value: Optional[str]) -> Optional[date]:
    """Parse a compact ``D-M-YY`` deadline; the year is read as 20YY."""
    if not value:
        return None
    match = COMPACT_DATE_PATTERN.match(value.strip())
    if match is None:
        return None
    day, month, year = (int(g) for g in match.groups())
    if not 1 <= month <= 12 or not 1 <= day <= 31:
        return None
    try:
        return date(2000 + year, month, day)
    except ValueError:
        # e.g. day 31 in a 30 day month
        return None


def days_until(target: Optional[date], today: Optional[date] = None) -> Optional[int]:
    """Signed whole days from today to target. Negative means overdue."""
    if target is None:
        return None
    return (target - (today or date.today())).days


def label(days: Optional[int]) -> str:
    if days is None:
        return "-"
    if days < 0:
        return f"Overdue by {abs(days)} days"
    if days == 0:
        return "Today"
    if days == 1:
        return "Tomorrow"
    return f"{days} days left"


class DeadlineEngine:
    """
    Compute deadline offsets and proximity for evidence requests.

    Usage:
        engine = DeadlineEngine()
        days = engine.days_until_request(req)
        engine.label(days)                       # "2 days left"
        engine.proximity_counts(requests, threshold=7)
    """

    def __init__(self, today: Optional[date] = None) -> None:
        self._today = today

    @property
    def today(self) -> date:
        return self._today or date.today()

    parse_calendar_date = staticmethod(parse_calendar_date)
    parse_compact_date = staticmethod(parse_compact_date)
    label = staticmethod(label)

    def deadline_of(self, req: EvidenceRequest, channel: DeadlineChannel = DeadlineChannel.PRIMARY) -> Optional[date]:
        if channel == DeadlineChannel.COMPACT:
            return parse_compact_date(req.deadline_alt)
        return parse_calendar_date(req.deadline_date)

    def days_until(self, target: Optional[date]) -> Optional[int]:
        return days_until(target, self.today)

    def days_until_request(
        self,
        req: EvidenceRequest,
        channel: DeadlineChannel = DeadlineChannel.PRIMARY,
    ) -> Optional[int]:
        return self.days_until(self.deadline_of(req, channel))

    def classify(
        self,
        req: EvidenceRequest,
        threshold: int,
        channel: DeadlineChannel = DeadlineChannel.PRIMARY,
    ) -> Proximity:
        """Classify one deadline channel of a request; fulfilled requests never alert."""
        if threshold < 0:
            raise ValueError(f"Threshold must be non-negative, got {threshold}")
        if req.is_fulfilled:
            return Proximity.NONE
        days = self.days_until_request(req, channel)
        if days is None:
            return Proximity.NONE
        if days < 0:
            return Proximity.OVERDUE
        if days <= threshold:
            return Proximity.APPROACHING
        return Proximity.NONE

    def proximity_counts(
        self,
        requests: Iterable[EvidenceRequest],
        threshold: int,
    ) -> dict[str, int]:
        """Alerting counts; only the primary deadline channel is considered."""
        counts = {"approaching": 0, "overdue": 0}
        for req in requests:
            proximity = self.classify(req, threshold, DeadlineChannel.PRIMARY)
            if proximity != Proximity.NONE:
                counts[proximity.value] += 1
        return counts
