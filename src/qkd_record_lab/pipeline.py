"""
Record-processing pipeline: pre-extract, enrich, merge, compute SKR.
"""
from __future__ import annotations

from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from functools import partial
import logging
from typing import Any, Dict, Iterable, List, Optional

from .enrichment import Enricher, EnrichmentError, EnrichmentRequest, auto_enricher
from .extractor import extract, is_structured_input
from .finite_key import FiniteKeyDefaults, SKRResult, compute_skr
from .provenance import merge, overlay
from .schema import get_path
from .units import apply_unit_conversions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessedRecord:
    normalized_data: Dict[str, Any]
    finite_key_skr: SKRResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            "normalized_data": self.normalized_data,
            "finite_key_skr": self.finite_key_skr.to_dict(),
        }


def normalize_logs(raw: str, enricher: Enricher = auto_enricher) -> Dict[str, Any]:
    """
    Turn raw vendor logs into a canonical record.

    Pre-extracted fields win over enriched ones; provenance is reconciled
    so each field path appears once.

    Raises
    ------
    ValueError
        If ``raw`` is empty.
    EnrichmentError
        If the enricher cannot handle the remaining text.
    """
    if not raw.strip():
        raise ValueError("raw logs are empty")

    partial_record, remaining = extract(raw)
    logger.debug(
        "pre-extracted %d fields, %d chars remaining",
        len(partial_record["_provenance"]), len(remaining),
    )
    try:
        enrichment = enricher(
            EnrichmentRequest(partial_record, remaining, structured=is_structured_input(raw))
        )
    except EnrichmentError as exc:
        logger.warning("enrichment failed: %s", exc)
        raise
    record = merge(partial_record, overlay(partial_record, enrichment))
    return apply_unit_conversions(record)


def process_logs(
    raw: str,
    enricher: Enricher = auto_enricher,
    defaults: Optional[FiniteKeyDefaults] = None,
) -> ProcessedRecord:
    """Normalize raw logs and compute their finite-key SKR."""
    record = normalize_logs(raw, enricher)
    skr = compute_skr(record, defaults)
    if not skr.ok:
        logger.debug("SKR unavailable for run_id=%s: %s", get_path(record, "meta.run_id"), skr.error)
    return ProcessedRecord(normalized_data=record, finite_key_skr=skr)


def process_many(
    raws: Iterable[str],
    enricher: Enricher = auto_enricher,
    defaults: Optional[FiniteKeyDefaults] = None,
    n_workers: int = 1,
) -> List[ProcessedRecord]:
    """
    Process independent records, optionally across worker processes.

    Results keep input order. With ``n_workers > 1`` the enricher must be
    picklable.
    """
    raws = list(raws)
    worker = partial(process_logs, enricher=enricher, defaults=defaults)
    if n_workers > 1:
        with ProcessPoolExecutor(max_workers=n_workers) as executor:
            return list(executor.map(worker, raws))
    return [worker(raw) for raw in raws]
