"""
Evidence and request records plus the referential store that owns them.

The store keeps the link graph between evidence items and evidence
requests free of dangling references: every delete sweeps the other
collection synchronously.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)

EVIDENCE_PREFIX = "BKT"
REQUEST_PREFIX = "PRM"

_NON_DIGIT = re.compile(r"\D")


class Validity(enum.Enum):
    """Review outcome of an evidence item."""

    VALID = "Valid"
    NEEDS_REVISION = "NeedsRevision"


class RequestStatus(enum.Enum):
    """Lifecycle states for an evidence request."""

    PENDING = "Pending"
    FULFILLED = "Fulfilled"


@dataclass
class EvidenceItem:
    """A discrete piece of audit documentation with a retrieval link."""

    id: str
    description: str = ""
    category: str = ""
    source_link: str = ""
    unit: str = ""
    responsible_party: str = ""
    received_date: str = ""
    validity: Validity = Validity.VALID
    note: str = ""
    related_request_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "description": self.description,
            "sourceLink": self.source_link,
            "unit": self.unit,
            "responsibleParty": self.responsible_party,
            "receivedDate": self.received_date,
            "validity": self.validity.value,
            "note": self.note,
            "relatedRequestId": self.related_request_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EvidenceItem:
        return cls(
            id=_text(data, "id"),
            category=_text(data, "category"),
            description=_text(data, "description"),
            source_link=_text(data, "sourceLink"),
            unit=_text(data, "unit"),
            responsible_party=_text(data, "responsibleParty"),
            received_date=_text(data, "receivedDate"),
            validity=_parse_enum(Validity, data.get("validity"), Validity.VALID),
            note=_text(data, "note"),
            related_request_id=_text(data, "relatedRequestId"),
        )

    def search_text(self) -> str:
        return " ".join(
            [
                self.id,
                self.description,
                self.unit,
                self.responsible_party,
                self.category,
                self.note,
            ]
        ).lower()


@dataclass
class EvidenceRequest:
    """A tracked ask for one or more evidence items."""

    id: str
    description: str = ""
    request_date: str = ""
    unit: str = ""
    deadline_date: str = ""
    deadline_alt: str = ""
    responsible_party: str = ""
    linked_evidence_ids: list[str] = field(default_factory=list)
    status: RequestStatus = RequestStatus.PENDING
    fulfillment_date: str = ""

    def __repr__(self) -> str:
        return (
            f"<EvidenceRequest(id='{self.id}', status={self.status.value}, "
            f"links={len(self.linked_evidence_ids)})>"
        )

    @property
    def is_fulfilled(self) -> bool:
        return self.status == RequestStatus.FULFILLED

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "requestDate": self.request_date,
            "unit": self.unit,
            "description": self.description,
            "deadlineDate": self.deadline_date,
            "deadlineAlt": self.deadline_alt,
            "responsibleParty": self.responsible_party,
            "linkedEvidenceIds": list(self.linked_evidence_ids),
            "status": self.status.value,
            "fulfillmentDate": self.fulfillment_date,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EvidenceRequest:
        # Older records carry the compact deadline as "waktu", or not at all.
        deadline_alt = data.get("deadlineAlt")
        if deadline_alt is None:
            deadline_alt = data.get("waktu")
        return cls(
            id=_text(data, "id"),
            request_date=_text(data, "requestDate"),
            unit=_text(data, "unit"),
            description=_text(data, "description"),
            deadline_date=_text(data, "deadlineDate"),
            deadline_alt="" if deadline_alt is None else str(deadline_alt),
            responsible_party=_text(data, "responsibleParty"),
            linked_evidence_ids=_links(data.get("linkedEvidenceIds")),
            status=_parse_enum(RequestStatus, data.get("status"), RequestStatus.PENDING),
            fulfillment_date=_text(data, "fulfillmentDate"),
        )

    def search_text(self) -> str:
        return " ".join(
            [
                self.id,
                self.description,
                self.unit,
                self.responsible_party,
                self.status.value,
            ]
        ).lower()


def _text(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    return "" if value is None else str(value)


def _links(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(i) for i in value]


def _parse_enum(enum_cls: type[enum.Enum], value: Any, default: Any) -> Any:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return default


def next_id(prefix: str, items: Iterable[Any]) -> str:
    """
    Return the next free identifier for ``prefix``.

    Ids that do not carry the prefix are ignored; ids with the prefix but
    no digits count as 0.
    """
    highest = 0
    for item in items:
        item_id = getattr(item, "id", item)
        if not isinstance(item_id, str) or not item_id.startswith(prefix):
            continue
        digits = _NON_DIGIT.sub("", item_id)
        if not digits:
            continue
        highest = max(highest, int(digits))
    return f"{prefix}-{highest + 1:03d}"


class ReferentialStore:
    """
    Owns the evidence and request collections.

    Usage:
        store = ReferentialStore()
        item = EvidenceItem(id=store.next_evidence_id(), description="Bank statement")
        store.upsert_evidence(item)
        store.delete_evidence(item.id)   # also unlinks it from every request
    """

    def __init__(
        self,
        evidence: Optional[list[EvidenceItem]] = None,
        requests: Optional[list[EvidenceRequest]] = None,
        threshold: int = 7,
    ) -> None:
        self.evidence: list[EvidenceItem] = list(evidence or [])
        self.requests: list[EvidenceRequest] = list(requests or [])
        self.threshold = 0
        self.set_threshold(threshold)

    # ---- Identifiers ----

    def next_evidence_id(self) -> str:
        return next_id(EVIDENCE_PREFIX, self.evidence)

    def next_request_id(self) -> str:
        return next_id(REQUEST_PREFIX, self.requests)

    # ---- Create / update ----

    def upsert_evidence(self, item: EvidenceItem) -> EvidenceItem:
        if not item.id:
            raise ValueError("Evidence item requires an id")
        _upsert(self.evidence, item)
        return item

    def upsert_request(self, req: EvidenceRequest) -> EvidenceRequest:
        if not req.id:
            raise ValueError("Evidence request requires an id")
        _upsert(self.requests, req)
        return req

    def link_evidence(self, request_id: str, evidence_id: str) -> EvidenceRequest:
        """Link an existing evidence item to an existing request."""
        req = self.get_request(request_id)
        if req is None:
            raise KeyError(f"Unknown request '{request_id}'")
        item = self.get_evidence(evidence_id)
        if item is None:
            raise KeyError(f"Unknown evidence item '{evidence_id}'")
        if evidence_id not in req.linked_evidence_ids:
            req.linked_evidence_ids.append(evidence_id)
        if not item.related_request_id:
            item.related_request_id = request_id
        return req

    def mark_fulfilled(self, request_id: str, today: Optional[date] = None) -> Optional[EvidenceRequest]:
        req = self.get_request(request_id)
        if req is None:
            return None
        req.status = RequestStatus.FULFILLED
        req.fulfillment_date = (today or date.today()).isoformat()
        return req

    def set_threshold(self, threshold: int) -> None:
        if threshold < 0:
            raise ValueError(f"Threshold must be non-negative, got {threshold}")
        self.threshold = int(threshold)

    # ---- Delete ----

    def delete_evidence(self, evidence_id: str) -> bool:
        before = len(self.evidence)
        self.evidence = [e for e in self.evidence if e.id != evidence_id]
        for req in self.requests:
            if evidence_id in req.linked_evidence_ids:
                req.linked_evidence_ids = [i for i in req.linked_evidence_ids if i != evidence_id]
                logger.debug("Unlinked %s from %s", evidence_id, req.id)
        return len(self.evidence) < before

    def delete_request(self, request_id: str) -> bool:
        before = len(self.requests)
        self.requests = [r for r in self.requests if r.id != request_id]
        for item in self.evidence:
            if item.related_request_id == request_id:
                item.related_request_id = ""
                logger.debug("Cleared request %s from %s", request_id, item.id)
        return len(self.requests) < before

    # ---- Read ----

    def get_evidence(self, evidence_id: str) -> Optional[EvidenceItem]:
        return next((e for e in self.evidence if e.id == evidence_id), None)

    def get_request(self, request_id: str) -> Optional[EvidenceRequest]:
        return next((r for r in self.requests if r.id == request_id), None)

    def list_evidence(self, query: str = "") -> list[EvidenceItem]:
        needle = query.strip().lower()
        if not needle:
            return list(self.evidence)
        return [e for e in self.evidence if needle in e.search_text()]

    def list_requests(self, query: str = "") -> list[EvidenceRequest]:
        needle = query.strip().lower()
        if not needle:
            return list(self.requests)
        return [r for r in self.requests if needle in r.search_text()]

    def fulfilled_with_evidence(self) -> list[EvidenceRequest]:
        return [r for r in self.requests if r.is_fulfilled and r.linked_evidence_ids]

    def evidence_snapshot(self) -> list[EvidenceItem]:
        return [replace(e) for e in self.evidence]

    def get_stats(self, today: Optional[date] = None) -> dict[str, Any]:
        from evidence_bank.tracker.deadlines import DeadlineEngine

        by_status: dict[str, int] = {}
        for st in RequestStatus:
            count = sum(1 for r in self.requests if r.status == st)
            if count > 0:
                by_status[st.value] = count
        by_validity: dict[str, int] = {}
        for v in Validity:
            count = sum(1 for e in self.evidence if e.validity == v)
            if count > 0:
                by_validity[v.value] = count
        counts = DeadlineEngine(today=today).proximity_counts(self.requests, self.threshold)
        return {
            "evidence": len(self.evidence),
            "requests": len(self.requests),
            "by_status": by_status,
            "by_validity": by_validity,
            "approaching": counts["approaching"],
            "overdue": counts["overdue"],
            "threshold": self.threshold,
        }


def _upsert(collection: list[Any], record: Any) -> None:
    for i, existing in enumerate(collection):
        if existing.id == record.id:
            collection[i] = record
            return
    collection.append(record)
