"""
Canonical QKD session record: sections, field paths and provenance entries.

A canonical record is a plain nested dict so it serializes directly to the
JSON shape callers consume::

    {
      "meta": {...}, "link": {...}, "security": {...}, "detector": {...},
      "dwdm": {...}, "optics": {...}, "dv_specific": {...},
      "_provenance": [{"field": ..., "snippet": ..., "confidence_score": ...}],
      "notes": None,
    }
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Mapping, Optional


SECTIONS = (
    "meta",
    "link",
    "security",
    "detector",
    "dwdm",
    "optics",
    "dv_specific",
)

PROVENANCE_KEY = "_provenance"
TOP_LEVEL_KEYS = SECTIONS + (PROVENANCE_KEY, "notes")

# Leaf fields known per section. Records may carry extra leaves; these are
# the ones downstream consumers rely on.
SECTION_FIELDS: Dict[str, tuple] = {
    "meta": (
        "vendor", "model", "run_id", "protocol", "link_type",
        "profile", "firmware_version", "timestamp",
    ),
    "link": ("distance_km", "fiber_loss_dB", "alpha_dB_per_km"),
    "security": (
        "epsilon", "epsilon_sec", "epsilon_cor", "qber_total", "sifted_bits",
        "sifted_key_rate_bps", "basis_reconciliation", "authentication",
        "post_processing",
    ),
    "detector": ("count_rate_Mcps", "max_Mcps"),
    "dwdm": ("channel_nm", "channel_THz", "spacing_GHz"),
    "optics": ("launch_power_dBm", "launch_power_mW"),
    "dv_specific": ("ec_efficiency_beta",),
}

# Normalized vendor key -> canonical field path. Several keys may alias the
# same path, but each key resolves to exactly one path.
KEY_MAP: Dict[str, str] = {
    "vendor": "meta.vendor",
    "model": "meta.model",
    "run_id": "meta.run_id",
    "protocol": "meta.protocol",
    "link_type": "meta.link_type",
    "profile": "meta.profile",
    "firmware_version": "meta.firmware_version",
    "timestamp": "meta.timestamp",
    "distance_km": "link.distance_km",
    "fiber_loss_db": "link.fiber_loss_dB",
    "alpha_db_per_km": "link.alpha_dB_per_km",
    "epsilon": "security.epsilon",
    "epsilon_sec": "security.epsilon_sec",
    "epsilon_cor": "security.epsilon_cor",
    "qber_total": "security.qber_total",
    "sifted_bits": "security.sifted_bits",
    "sifted_key_rate_bps": "security.sifted_key_rate_bps",
    "basis_reconciliation": "security.basis_reconciliation",
    "authentication": "security.authentication",
    "count_rate_mcps": "detector.count_rate_Mcps",
    "detector_count_rate_mcps": "detector.count_rate_Mcps",
    "max_mcps": "detector.max_Mcps",
    "detector_max_mcps": "detector.max_Mcps",
    "channel_nm": "dwdm.channel_nm",
    "channel_thz": "dwdm.channel_THz",
    "spacing_ghz": "dwdm.spacing_GHz",
    "launch_power_dbm": "optics.launch_power_dBm",
    "launch_power_mw": "optics.launch_power_mW",
    "ec_efficiency_beta": "dv_specific.ec_efficiency_beta",
}


@dataclass(frozen=True)
class ProvenanceEntry:
    """Where a canonical field value came from.

    Attributes
    ----------
    field : str
        Dotted field path, e.g. ``security.qber_total``.
    snippet : str
        Source text the value was read from.
    confidence_score : float
        Trust in the value, in [0, 1]. Deterministic extraction uses 1.0.
    """
    field: str
    snippet: str
    confidence_score: float = 1.0

    def __post_init__(self):
        if not 0.0 <= self.confidence_score <= 1.0:
            raise ValueError(
                f"confidence_score must be in [0, 1], got {self.confidence_score}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def normalize_key(raw_key: str) -> str:
    """Lowercase a vendor key and join internal whitespace with underscores."""
    return "_".join(raw_key.strip().lower().split())


def empty_record() -> Dict[str, Any]:
    """Return a canonical record with every section present and empty."""
    record: Dict[str, Any] = {section: {} for section in SECTIONS}
    record[PROVENANCE_KEY] = []
    record["notes"] = None
    return record


def split_path(path: str) -> tuple:
    parts = path.split(".")
    if len(parts) < 2 or not all(parts):
        raise ValueError(f"field path must be 'section.field', got {path!r}")
    return tuple(parts)


def get_path(record: Mapping[str, Any], path: str, default: Any = None) -> Any:
    """Read a dotted path; missing sections, null sections and leaves give ``default``."""
    current: Any = record
    for part in split_path(path):
        if not isinstance(current, Mapping):
            return default
        current = current.get(part)
        if current is None:
            return default
    return current


def set_path(record: Dict[str, Any], path: str, value: Any) -> None:
    """Write a dotted path, creating (or replacing null) intermediate sections."""
    parts = split_path(path)
    current = record
    for part in parts[:-1]:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    current[parts[-1]] = value


def provenance_of(record: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """Provenance list of a record, or an empty list when absent or null."""
    entries = record.get(PROVENANCE_KEY)
    return list(entries) if isinstance(entries, list) else []


def provenance_fields(record: Mapping[str, Any]) -> set:
    return {entry.get("field") for entry in provenance_of(record) if isinstance(entry, Mapping)}


def copy_record(record: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Deep copy a record, filling in any missing top-level keys."""
    if record is None:
        return empty_record()
    copied = copy.deepcopy(dict(record))
    for section in SECTIONS:
        copied.setdefault(section, {})
    if not isinstance(copied.get(PROVENANCE_KEY), list):
        copied[PROVENANCE_KEY] = []
    copied.setdefault("notes", None)
    return copied
