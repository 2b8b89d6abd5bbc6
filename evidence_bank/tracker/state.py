"""
Persisted state and the JSON export/import payload.

Both share one shape::

    {"evidence": [...], "requests": [...], "threshold": 7}

Imports also accept the legacy request key ``permintaan``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from evidence_bank.tracker.store import EvidenceItem, EvidenceRequest, ReferentialStore

DEFAULT_THRESHOLD = 7
REQUEST_KEYS = ("requests", "permintaan")


class MalformedImportError(ValueError):
    """Raised when an import payload lacks a required collection or holds a non-object record."""


@dataclass
class State:
    evidence: list[EvidenceItem] = field(default_factory=list)
    requests: list[EvidenceRequest] = field(default_factory=list)
    threshold: int = DEFAULT_THRESHOLD

    def to_dict(self) -> dict[str, Any]:
        return {
            "evidence": [e.to_dict() for e in self.evidence],
            "requests": [r.to_dict() for r in self.requests],
            "threshold": self.threshold,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> State:
        """Lenient loader for previously saved state."""
        requests_raw = _resolve_requests(data) or []
        return cls(
            evidence=[EvidenceItem.from_dict(e) for e in data.get("evidence") or [] if isinstance(e, dict)],
            requests=[EvidenceRequest.from_dict(r) for r in requests_raw if isinstance(r, dict)],
            threshold=_coerce_threshold(data.get("threshold")),
        )

    @classmethod
    def from_store(cls, store: ReferentialStore) -> State:
        return cls(
            evidence=[EvidenceItem.from_dict(e.to_dict()) for e in store.evidence],
            requests=[EvidenceRequest.from_dict(r.to_dict()) for r in store.requests],
            threshold=store.threshold,
        )

    def to_store(self) -> ReferentialStore:
        return ReferentialStore(
            evidence=self.evidence,
            requests=self.requests,
            threshold=self.threshold,
        )


def dumps_state(state: State) -> str:
    return json.dumps(state.to_dict(), indent=2, ensure_ascii=False)


def parse_import(text: str) -> State:
    """
    Validate and decode an import payload.

    Raises:
        MalformedImportError: if the text is not a JSON object, the evidence
            collection is missing, no request collection is present under
            either accepted key, or a record is not an object.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedImportError(f"Import file is not valid JSON: {e.msg}") from e
    if not isinstance(data, dict):
        raise MalformedImportError("Import file must contain a JSON object")
    if not isinstance(data.get("evidence"), list):
        raise MalformedImportError("Import file has no evidence collection")
    requests = _resolve_requests(data)
    if requests is None:
        raise MalformedImportError(
            "Import file has no request collection (expected 'requests' or 'permintaan')"
        )
    _check_records("evidence", data["evidence"])
    _check_records("request", requests)
    return State.from_dict(data)


def import_into(store: ReferentialStore, text: str) -> ReferentialStore:
    """Replace the store's contents with an import payload; untouched on error."""
    state = parse_import(text)
    store.evidence = state.evidence
    store.requests = state.requests
    store.set_threshold(state.threshold)
    return store


def _check_records(kind: str, records: list[Any]) -> None:
    for position, record in enumerate(records):
        if not isinstance(record, dict):
            raise MalformedImportError(
                f"{kind.capitalize()} record at position {position} is not an object"
            )
        links = record.get("linkedEvidenceIds")
        if links is not None and not isinstance(links, list):
            raise MalformedImportError(
                f"{kind.capitalize()} record at position {position} has links that are not a list"
            )


def _resolve_requests(data: dict[str, Any]) -> list[Any] | None:
    for key in REQUEST_KEYS:
        value = data.get(key)
        if isinstance(value, list):
            return value
    return None


def _coerce_threshold(value: Any) -> int:
    try:
        threshold = int(value)
    except (TypeError, ValueError):
        return DEFAULT_THRESHOLD
    return threshold if threshold >= 0 else DEFAULT_THRESHOLD
