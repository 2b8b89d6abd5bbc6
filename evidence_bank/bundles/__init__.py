"""
Evidence bundles — download linked evidence and package it as a zip
archive with a manifest and failure log.
"""

from evidence_bank.bundles.fetcher import EvidenceFetcher, FetchError, FetcherConfig
from evidence_bank.bundles.exporter import BundleExporter, BundleFailure, ExportResult, FailureKind

__all__ = [
    "EvidenceFetcher",
    "FetchError",
    "FetcherConfig",
    "BundleExporter",
    "BundleFailure",
    "ExportResult",
    "FailureKind",
]
