"""
Alert engine for overdue and approaching evidence request deadlines.

Generates structured alert objects that can be consumed by the CLI,
the reminder digest, or any notification system.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from evidence_bank.tracker.deadlines import (
    DeadlineChannel,
    DeadlineEngine,
    Proximity,
)
from evidence_bank.tracker.store import EvidenceRequest, ReferentialStore


class AlertSeverity(Enum):
    APPROACHING = "approaching"
    DUE_TODAY = "due_today"
    OVERDUE = "overdue"


@dataclass
class Alert:
    """A single alert about a tracked request."""

    request_id: str
    description: str
    unit: str
    responsible_party: str
    channel: DeadlineChannel
    severity: AlertSeverity
    message: str
    days_remaining: int
    deadline: Optional[date]

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "description": self.description,
            "unit": self.unit,
            "responsible_party": self.responsible_party,
            "channel": self.channel.value,
            "severity": self.severity.value,
            "message": self.message,
            "days_remaining": self.days_remaining,
            "deadline": self.deadline.isoformat() if self.deadline else None,
        }

    def format_text(self) -> str:
        severity_prefix = {
            AlertSeverity.APPROACHING: "[APPROACHING]",
            AlertSeverity.DUE_TODAY: "[TODAY]",
            AlertSeverity.OVERDUE: "[OVERDUE]",
        }
        prefix = severity_prefix[self.severity]
        return (
            f"{prefix} {self.request_id} — {self.unit or 'no unit'}\n"
            f"  {self.description}\n"
            f"  {self.message}\n"
            f"  Responsible: {self.responsible_party or '-'}\n"
        )


class AlertEngine:
    """
    Scan requests in a store and generate deadline alerts.

    Usage:
        engine = AlertEngine(store)
        for alert in engine.check_all():
            print(alert.format_text())
    """

    SEVERITY_ORDER = {
        AlertSeverity.OVERDUE: 0,
        AlertSeverity.DUE_TODAY: 1,
        AlertSeverity.APPROACHING: 2,
    }

    def __init__(
        self,
        store: ReferentialStore,
        threshold: Optional[int] = None,
        today: Optional[date] = None,
    ) -> None:
        self.store = store
        self.threshold = store.threshold if threshold is None else threshold
        self.engine = DeadlineEngine(today=today)

    def check_all(self, channel: DeadlineChannel = DeadlineChannel.PRIMARY) -> list[Alert]:
        """Check every pending request and return alerts, most urgent first."""
        alerts: list[Alert] = []
        for req in self.store.requests:
            alert = self._check_request(req, channel)
            if alert is not None:
                alerts.append(alert)
        alerts.sort(key=lambda a: (self.SEVERITY_ORDER[a.severity], a.days_remaining))
        return alerts

    def check_both_channels(self) -> list[Alert]:
        """Alerts for the primary and the compact deadline, each classified on its own."""
        alerts = self.check_all(DeadlineChannel.PRIMARY) + self.check_all(DeadlineChannel.COMPACT)
        alerts.sort(key=lambda a: (self.SEVERITY_ORDER[a.severity], a.days_remaining))
        return alerts

    def check_overdue(self) -> list[Alert]:
        return [a for a in self.check_all() if a.severity == AlertSeverity.OVERDUE]

    def check_approaching(self) -> list[Alert]:
        return [a for a in self.check_all() if a.severity != AlertSeverity.OVERDUE]

    def counts(self) -> dict[str, int]:
        return self.engine.proximity_counts(self.store.requests, self.threshold)

    def _check_request(self, req: EvidenceRequest, channel: DeadlineChannel) -> Optional[Alert]:
        proximity = self.engine.classify(req, self.threshold, channel)
        if proximity == Proximity.NONE:
            return None

        deadline = self.engine.deadline_of(req, channel)
        days_left = self.engine.days_until(deadline)

        if proximity == Proximity.OVERDUE:
            severity = AlertSeverity.OVERDUE
        elif days_left == 0:
            severity = AlertSeverity.DUE_TODAY
        else:
            severity = AlertSeverity.APPROACHING

        return Alert(
            request_id=req.id,
            description=req.description,
            unit=req.unit,
            responsible_party=req.responsible_party,
            channel=channel,
            severity=severity,
            message=f"{self.engine.label(days_left)} ({deadline.isoformat()}).",
            days_remaining=days_left,
            deadline=deadline,
        )
