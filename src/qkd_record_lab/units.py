"""
Deterministic unit conversions applied to merged records.
"""
from __future__ import annotations

import math
from typing import Any, Dict, Optional

from .helpers import is_number
from .schema import PROVENANCE_KEY, get_path, provenance_fields, set_path

SPEED_OF_LIGHT_NM_THZ = 299792.458


def thz_to_nm(frequency_thz: float) -> float:
    """Wavelength in nm for a frequency in THz, rounded to 2 decimals."""
    if frequency_thz <= 0:
        raise ValueError(f"frequency_thz must be > 0, got {frequency_thz}")
    return round(SPEED_OF_LIGHT_NM_THZ / frequency_thz, 2)


def dbm_to_mw(power_dbm: float) -> float:
    """Power in mW for a level in dBm, rounded to 3 significant figures."""
    return round_sig(10 ** (power_dbm / 10.0), 3)


def round_sig(value: float, digits: int) -> float:
    if value == 0 or not math.isfinite(value):
        return value
    return round(value, digits - 1 - int(math.floor(math.log10(abs(value)))))


def _derive(
    record: Dict[str, Any],
    path: str,
    value: Any,
    snippet: str,
    covered: set,
) -> None:
    set_path(record, path, value)
    if path not in covered:
        if not isinstance(record.get(PROVENANCE_KEY), list):
            record[PROVENANCE_KEY] = []
        record[PROVENANCE_KEY].append(
            {"field": path, "snippet": snippet, "confidence_score": 1.0}
        )
        covered.add(path)


def apply_unit_conversions(record: Dict[str, Any]) -> Dict[str, Any]:
    """
    Fill derived fields in place and return the record.

    - ``dwdm.channel_nm`` from ``dwdm.channel_THz``
    - ``optics.launch_power_mW`` from ``optics.launch_power_dBm``
    - ``security.post_processing`` when a basis reconciliation is named

    Existing values are never overwritten.
    """
    covered = provenance_fields(record)

    channel_thz = get_path(record, "dwdm.channel_THz")
    if get_path(record, "dwdm.channel_nm") is None and is_number(channel_thz) and channel_thz > 0:
        _derive(
            record, "dwdm.channel_nm", thz_to_nm(channel_thz),
            f"derived: 299792.458 / {channel_thz} THz", covered,
        )

    power_dbm = get_path(record, "optics.launch_power_dBm")
    if get_path(record, "optics.launch_power_mW") is None and is_number(power_dbm):
        _derive(
            record, "optics.launch_power_mW", dbm_to_mw(power_dbm),
            f"derived: 10^({power_dbm} dBm / 10)", covered,
        )

    reconciliation: Optional[Any] = get_path(record, "security.basis_reconciliation")
    if reconciliation and get_path(record, "security.post_processing") is None:
        _derive(
            record, "security.post_processing", True,
            f"inferred from basis_reconciliation: {reconciliation}", covered,
        )
    return record
