"""
Reconciliation of high-trust (pre-extracted) and low-trust (enriched) records.
"""
from __future__ import annotations

from typing import Any, Dict, List, Mapping

from .schema import (
    PROVENANCE_KEY,
    SECTIONS,
    copy_record,
    provenance_fields,
    provenance_of,
)


def merge_provenance(
    high_trust: Mapping[str, Any],
    low_trust: Mapping[str, Any],
) -> List[Dict[str, Any]]:
    """
    Combine two provenance lists without duplicating field paths.

    High-trust entries are kept in their original order; low-trust entries
    follow, minus any whose field is already covered by a high-trust entry.
    """
    covered = provenance_fields(high_trust)
    kept = [dict(entry) for entry in provenance_of(high_trust)]
    kept.extend(
        dict(entry)
        for entry in provenance_of(low_trust)
        if entry.get("field") not in covered
    )
    return kept


def merge(high_trust: Mapping[str, Any], low_trust: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Produce the canonical record from an already value-combined ``low_trust``.

    ``low_trust`` is expected to carry the structurally combined values
    (high-trust values winning on conflict, see :func:`overlay`); only its
    provenance is reconciled here. Values are not touched.
    """
    merged = copy_record(low_trust)
    merged[PROVENANCE_KEY] = merge_provenance(high_trust, low_trust)
    return merged


def overlay(high_trust: Mapping[str, Any], low_trust: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Structurally combine two records, non-null high-trust leaves winning.

    The result carries the low-trust provenance unchanged; pass it to
    :func:`merge` to reconcile provenance.
    """
    combined = copy_record(low_trust)
    for section in SECTIONS:
        high_values = high_trust.get(section)
        if not isinstance(high_values, Mapping) or not high_values:
            continue
        target = combined.get(section)
        if not isinstance(target, dict):
            target = {}
            combined[section] = target
        for key, value in high_values.items():
            if value is not None:
                target[key] = value
    if high_trust.get("notes") is not None:
        combined["notes"] = high_trust["notes"]
    return combined


def reconcile(high_trust: Mapping[str, Any], low_trust: Mapping[str, Any]) -> Dict[str, Any]:
    """Overlay values then merge provenance in one step."""
    return merge(high_trust, overlay(high_trust, low_trust))
