"""Validation helpers for the canonical record and SKR result JSON contracts."""

from __future__ import annotations

import math
from typing import Any, Dict, Set

from .finite_key import EQUATION
from .schema import PROVENANCE_KEY, SECTIONS, TOP_LEVEL_KEYS


CONTRACT_CHECKS = (
    "record.top_level_keys",
    "record.sections",
    "record.leaf_types",
    "record.notes",
    "record.provenance.list",
    "record.provenance.entry_shape",
    "record.provenance.confidence_range",
    "record.provenance.unique_fields",
    "skr.keys",
    "skr.equation",
    "skr.inputs",
    "skr.intermediates",
    "skr.rate",
    "skr.error_consistency",
    "skr.trace.entries",
    "skr.trace.ordered",
)

# Steps every successful calculation ends with, in this order.
SKR_TRACE_TAIL = (
    "Sifted Rate (S)",
    "QBER (Q)",
    "EC Efficiency (β)",
    "Block Size (N)",
    "ε_sec",
    "ε_cor",
    "h₂(Q)",
    "Leak_EC",
    "Δ (Penalty)",
    "R_secure_bits",
    "R_secure_bps",
)

SKR_INPUT_KEYS = ("S_bps", "Q", "beta", "N", "eps_sec", "eps_cor")
SKR_INTERMEDIATE_KEYS = ("h2_Q", "leakage_ec_bits", "finite_penalty_bits")


class ContractError(ValueError):
    """Raised when a contract assertion fails."""


def _require(condition: bool, check_id: str, message: str, checks: Set[str]) -> None:
    checks.add(check_id)
    if not condition:
        raise ContractError(message)


def _is_leaf(value: Any) -> bool:
    if value is None or isinstance(value, (str, bool, int)):
        return True
    return isinstance(value, float) and math.isfinite(value)


def _is_real(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def validate_canonical_record(record: Dict[str, Any], *, return_checks: bool = False) -> Set[str] | None:
    """Validate a canonical record against the published JSON shape."""
    checks: Set[str] = set()
    if not isinstance(record, dict):
        raise ContractError("record must be an object")
    missing = [key for key in TOP_LEVEL_KEYS if key not in record]
    _require(
        not missing,
        "record.top_level_keys",
        f"record is missing top-level keys: {', '.join(missing)}",
        checks,
    )

    for section in SECTIONS:
        values = record[section]
        _require(
            values is None or isinstance(values, dict),
            "record.sections",
            f"{section} must be an object or null",
            checks,
        )
        for key, value in (values or {}).items():
            _require(
                _is_leaf(value),
                "record.leaf_types",
                f"{section}.{key} must be a string, number, boolean or null",
                checks,
            )

    notes = record.get("notes")
    _require(notes is None or isinstance(notes, str), "record.notes", "notes must be a string or null", checks)

    provenance = record[PROVENANCE_KEY]
    _require(isinstance(provenance, list), "record.provenance.list", "_provenance must be a list", checks)
    seen: Set[str] = set()
    for entry in provenance:
        _require(
            isinstance(entry, dict)
            and isinstance(entry.get("field"), str)
            and isinstance(entry.get("snippet"), str),
            "record.provenance.entry_shape",
            "_provenance entries must have string field and snippet",
            checks,
        )
        score = entry.get("confidence_score")
        if score is not None:
            _require(
                _is_real(score) and 0.0 <= score <= 1.0,
                "record.provenance.confidence_range",
                f"confidence_score for {entry['field']} must be in [0, 1]",
                checks,
            )
        else:
            checks.add("record.provenance.confidence_range")
        _require(
            entry["field"] not in seen,
            "record.provenance.unique_fields",
            f"duplicate provenance entry for {entry['field']}",
            checks,
        )
        seen.add(entry["field"])

    return checks if return_checks else None


def validate_skr_result(result: Dict[str, Any], *, return_checks: bool = False) -> Set[str] | None:
    """Validate a serialized SKRResult."""
    checks: Set[str] = set()
    if not isinstance(result, dict):
        raise ContractError("SKR result must be an object")
    _require(
        all(key in result for key in ("equation", "inputs", "intermediates", "R_secure_bps", "trace")),
        "skr.keys",
        "SKR result must have equation, inputs, intermediates, R_secure_bps and trace",
        checks,
    )
    _require(result["equation"] == EQUATION, "skr.equation", "equation does not match the calculator", checks)

    trace = result["trace"]
    _require(isinstance(trace, list), "skr.trace.entries", "trace must be a list", checks)
    for entry in trace:
        _require(
            isinstance(entry, dict)
            and isinstance(entry.get("step"), str)
            and isinstance(entry.get("value"), (int, float, str))
            and isinstance(entry.get("formula", ""), str),
            "skr.trace.entries",
            "trace entries must have step, value and an optional string formula",
            checks,
        )

    rate = result["R_secure_bps"]
    error = result.get("error")
    if error is not None:
        _require(
            isinstance(error, str) and rate is None and result["inputs"] == {} and result["intermediates"] == {},
            "skr.error_consistency",
            "failed results must have a string error, null rate and empty inputs/intermediates",
            checks,
        )
        return checks if return_checks else None

    _require(rate is not None, "skr.error_consistency", "R_secure_bps may only be null with an error", checks)
    _require(_is_real(rate) and rate >= 0.0, "skr.rate", "R_secure_bps must be a finite number >= 0", checks)
    _require(
        tuple(result["inputs"]) == SKR_INPUT_KEYS,
        "skr.inputs",
        f"inputs must have keys {', '.join(SKR_INPUT_KEYS)}",
        checks,
    )
    _require(
        tuple(result["intermediates"]) == SKR_INTERMEDIATE_KEYS,
        "skr.intermediates",
        f"intermediates must have keys {', '.join(SKR_INTERMEDIATE_KEYS)}",
        checks,
    )
    steps = tuple(entry["step"] for entry in trace)
    _require(
        steps[-len(SKR_TRACE_TAIL):] == SKR_TRACE_TAIL,
        "skr.trace.ordered",
        "trace must end with the input, entropy, leakage, penalty and rate steps in order",
        checks,
    )
    return checks if return_checks else None
