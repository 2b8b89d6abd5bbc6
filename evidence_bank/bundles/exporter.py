"""
Bundle exporter — package the evidence linked to one or more requests
into a single zip archive with a CSV manifest and a failure log.

Failures are collected per item and never abort the batch: a missing
record, an empty link, or a failing download is written to FAILURES.txt
and processing continues with the next link.
"""

from __future__ import annotations

import io
import logging
import zipfile
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Iterable, Optional

from evidence_bank.bundles.fetcher import EvidenceFetcher, FetchedPayload, FetcherConfig
from evidence_bank.bundles.manifest import BUNDLE_HEADER, SINGLE_HEADER, Manifest
from evidence_bank.bundles.naming import derive_filename, safe_component
from evidence_bank.tracker.store import EvidenceItem, EvidenceRequest, ReferentialStore

logger = logging.getLogger(__name__)

MANIFEST_NAME = "MANIFEST.csv"
FAILURES_NAME = "FAILURES.txt"


class FailureKind(Enum):
    NOT_FOUND = "not_found"
    MISSING_RESOURCE = "missing_resource"
    FETCH_FAILURE = "fetch_failure"


@dataclass
class BundleFailure:
    """One item that could not be packaged."""

    kind: FailureKind
    subject: str
    reason: str

    def format_line(self) -> str:
        return f"{self.subject}: {self.reason}"


@dataclass
class ExportResult:
    """The archive plus everything the caller needs to report on it."""

    archive: bytes
    filename: str
    manifest: str
    files: list[str] = field(default_factory=list)
    failures: list[BundleFailure] = field(default_factory=list)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    def failure_log(self) -> str:
        return "\n".join(f.format_line() for f in self.failures)

    def summary(self) -> str:
        lines = [
            f"Archive:  {self.filename} ({len(self.archive)} bytes)",
            f"Files:    {len(self.files)}",
            f"Failures: {self.failure_count}",
        ]
        for f in self.failures:
            lines.append(f"  - {f.format_line()}")
        return "\n".join(lines)


@dataclass
class _Entry:
    """A visited link, in link order, with its pending download if any."""

    request: EvidenceRequest
    evidence_id: str
    item: Optional[EvidenceItem] = None
    future: Optional[Future] = None


class BundleExporter:
    """
    Build evidence archives for requests.

    Usage:
        exporter = BundleExporter(max_workers=4)
        result = exporter.export_request(req, store.evidence)
        Path(result.filename).write_bytes(result.archive)

        result = exporter.export_fulfilled(store)
        print(result.summary())
    """

    def __init__(
        self,
        fetcher: Optional[EvidenceFetcher] = None,
        fetcher_config: Optional[FetcherConfig] = None,
        max_workers: int = 4,
    ) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self.fetcher = fetcher
        self.fetcher_config = fetcher_config
        self.max_workers = max_workers

    # ---- Public API ----

    def export_request(
        self,
        request: EvidenceRequest,
        evidence: Iterable[EvidenceItem],
    ) -> ExportResult:
        """
        Archive the evidence of a single request.

        Every resolved evidence item gets a manifest row, written before the
        link is checked, so rows appear even when the download fails.
        Payloads are stored at the archive root.
        """
        manifest = Manifest(SINGLE_HEADER)
        failures: list[BundleFailure] = []
        payloads: dict[str, bytes] = {}

        for entry in self._run([request], evidence):
            item = entry.item
            if item is None:
                failures.append(self._not_found(entry))
                continue
            manifest.add(item.id, item.description, item.source_link, item.unit, item.responsible_party)
            payload = self._collect(entry, failures)
            if payload is None:
                continue
            name = derive_filename(item.id, item.source_link, item.description, payload.content_type)
            payloads.setdefault(name, payload.content)

        return self._finish(f"{request.id}-evidence.zip", manifest, payloads, failures)

    def export_bundle(
        self,
        requests: Iterable[EvidenceRequest],
        evidence: Iterable[EvidenceItem],
        filename: Optional[str] = None,
    ) -> ExportResult:
        """
        Archive the evidence of several requests.

        Each request's payloads go under a directory named by the request id.
        Only successfully downloaded items get a manifest row.
        """
        manifest = Manifest(BUNDLE_HEADER)
        failures: list[BundleFailure] = []
        payloads: dict[str, bytes] = {}

        for entry in self._run(list(requests), evidence):
            item = entry.item
            if item is None:
                failures.append(self._not_found(entry))
                continue
            payload = self._collect(entry, failures)
            if payload is None:
                continue
            name = derive_filename(item.id, item.source_link, item.description, payload.content_type)
            path = f"{safe_component(entry.request.id)}/{name}"
            payloads.setdefault(path, payload.content)
            manifest.add(
                entry.request.id,
                item.id,
                item.description,
                item.source_link,
                item.unit,
                item.responsible_party,
                path,
            )

        name = filename or f"evidence-bundle-{date.today():%Y%m%d}.zip"
        return self._finish(name, manifest, payloads, failures)

    def export_fulfilled(self, store: ReferentialStore, filename: Optional[str] = None) -> ExportResult:
        """Bundle every fulfilled request that has at least one linked evidence id."""
        return self.export_bundle(
            store.fulfilled_with_evidence(),
            store.evidence_snapshot(),
            filename=filename,
        )

    # ---- Internals ----

    def _run(
        self,
        requests: list[EvidenceRequest],
        evidence: Iterable[EvidenceItem],
    ) -> list[_Entry]:
        """
        Resolve every link and download all payloads on a bounded pool.

        Returns entries in request order, then link order. The pool is
        drained before returning, so every download has either succeeded
        or failed by then.
        """
        index: dict[str, EvidenceItem] = {}
        for item in evidence:
            index.setdefault(item.id, item)

        owns_fetcher = self.fetcher is None
        fetcher = self.fetcher or EvidenceFetcher(self.fetcher_config)
        entries: list[_Entry] = []
        try:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                for req in requests:
                    for evidence_id in req.linked_evidence_ids:
                        entry = _Entry(request=req, evidence_id=evidence_id, item=index.get(evidence_id))
                        if entry.item is not None and entry.item.source_link:
                            entry.future = pool.submit(fetcher.fetch, entry.item.source_link)
                        entries.append(entry)
        finally:
            if owns_fetcher:
                fetcher.close()
        return entries

    @staticmethod
    def _not_found(entry: _Entry) -> BundleFailure:
        failure = BundleFailure(
            kind=FailureKind.NOT_FOUND,
            subject=f"{entry.request.id}/{entry.evidence_id}",
            reason="not found in evidence bank",
        )
        logger.warning("Bundle item skipped: %s", failure.format_line())
        return failure

    @staticmethod
    def _collect(entry: _Entry, failures: list[BundleFailure]) -> Optional[FetchedPayload]:
        item = entry.item
        if entry.future is None:
            failure = BundleFailure(FailureKind.MISSING_RESOURCE, item.id, "link not available")
            failures.append(failure)
            logger.warning("Bundle item skipped: %s", failure.format_line())
            return None
        try:
            return entry.future.result()
        except Exception as e:
            failure = BundleFailure(FailureKind.FETCH_FAILURE, item.id, str(e) or e.__class__.__name__)
            failures.append(failure)
            logger.warning("Bundle item failed: %s", failure.format_line())
            return None

    @staticmethod
    def _finish(
        filename: str,
        manifest: Manifest,
        payloads: dict[str, bytes],
        failures: list[BundleFailure],
    ) -> ExportResult:
        buffer = io.BytesIO()
        manifest_text = manifest.render()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zipf:
            for path, content in payloads.items():
                zipf.writestr(path, content)
            zipf.writestr(MANIFEST_NAME, manifest_text.encode("utf-8"))
            if failures:
                zipf.writestr(FAILURES_NAME, "\n".join(f.format_line() for f in failures).encode("utf-8"))

        logger.info(
            "Built %s: %d file(s), %d manifest row(s), %d failure(s)",
            filename, len(payloads), len(manifest), len(failures),
        )
        return ExportResult(
            archive=buffer.getvalue(),
            filename=filename,
            manifest=manifest_text,
            files=list(payloads.keys()),
            failures=failures,
        )
