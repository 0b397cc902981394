from __future__ import annotations
from typing import Any, Dict, Iterable, List, Mapping, Optional

import numpy as np

from .finite_key import FiniteKeyDefaults, compute_skr
from .schema import copy_record, set_path


def _sweep_field(
    record: Mapping[str, Any],
    path: str,
    label: str,
    values: Iterable[float],
    defaults: Optional[FiniteKeyDefaults],
    cast=float,
) -> List[Dict[str, Any]]:
    base = copy_record(record)
    out: List[Dict[str, Any]] = []
    for value in values:
        point = cast(value)
        set_path(base, path, point)
        result = compute_skr(base, defaults)
        out.append({
            label: point,
            "R_secure_bps": result.R_secure_bps,
            "error": result.error,
            "aborted": result.error_type == "SecurityThresholdExceeded",
        })
    return out


def qber_grid(qber_min: float, qber_max: float, steps: int) -> np.ndarray:
    return np.linspace(qber_min, qber_max, steps)


def block_size_grid(n_min: float, n_max: float, steps: int) -> np.ndarray:
    """Log-spaced block sizes, rounded to whole bits."""
    return np.unique(np.round(np.geomspace(n_min, n_max, steps)))


def sweep_qber(
    record: Mapping[str, Any],
    qber_values: Iterable[float],
    defaults: Optional[FiniteKeyDefaults] = None,
) -> List[Dict[str, Any]]:
    """
    Recompute the secure key rate of ``record`` for each QBER value.

    All other inputs are taken from the record unchanged.

    Returns
    -------
    List[Dict[str, Any]]
        One dict per point: qber, R_secure_bps, error, aborted.
    """
    return _sweep_field(record, "security.qber_total", "qber", qber_values, defaults)


def sweep_block_size(
    record: Mapping[str, Any],
    n_values: Iterable[float],
    defaults: Optional[FiniteKeyDefaults] = None,
) -> List[Dict[str, Any]]:
    """Recompute the secure key rate of ``record`` for each block size N."""
    return _sweep_field(record, "security.sifted_bits", "sifted_bits", n_values, defaults, cast=int)


def compute_summary_stats(results: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Summarize a sweep or a batch of SKR results.

    Parameters
    ----------
    results : List[Dict[str, Any]]
        Dicts carrying at least ``R_secure_bps`` (None on failure); sweep
        points may also carry ``qber``.

    Returns
    -------
    Dict[str, Any]
        Counts, min/max/mean secure rate over successful points, and the
        largest QBER that still yields a positive rate.
    """
    rates = np.array(
        [r["R_secure_bps"] for r in results if r.get("R_secure_bps") is not None],
        dtype=float,
    )
    positive_qbers = [
        r["qber"] for r in results
        if "qber" in r and r.get("R_secure_bps") is not None and r["R_secure_bps"] > 0
    ]
    return {
        "n_points": len(results),
        "n_errors": len(results) - int(rates.size),
        "rate_min_bps": float(np.min(rates)) if rates.size else None,
        "rate_max_bps": float(np.max(rates)) if rates.size else None,
        "rate_mean_bps": float(np.mean(rates)) if rates.size else None,
        "n_positive": int(np.count_nonzero(rates > 0)),
        "max_qber_positive_rate": max(positive_qbers) if positive_qbers else None,
    }
