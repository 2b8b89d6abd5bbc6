"""
Evidence tracker — records, referential store, deadlines, alerts, and persistence.
"""

from evidence_bank.tracker.store import (
    EvidenceItem,
    EvidenceRequest,
    ReferentialStore,
    RequestStatus,
    Validity,
    next_id,
)
from evidence_bank.tracker.deadlines import DeadlineEngine
from evidence_bank.tracker.alerts import AlertEngine
from evidence_bank.tracker.state import MalformedImportError, State
from evidence_bank.tracker.persistence import JsonFileStateStore, StateDB

__all__ = [
    "EvidenceItem",
    "EvidenceRequest",
    "ReferentialStore",
    "RequestStatus",
    "Validity",
    "next_id",
    "DeadlineEngine",
    "AlertEngine",
    "MalformedImportError",
    "State",
    "JsonFileStateStore",
    "StateDB",
]
