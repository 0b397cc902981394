"""Assumptions manifest for finite-key SKR reports."""

from __future__ import annotations

from typing import Any, Dict

from .extractor import EXTRACTOR_CONFIDENCE
from .enrichment import ENRICHMENT_CONFIDENCE
from .finite_key import DEFAULT_EC_EFFICIENCY, EQUATION, QBER_THRESHOLD_BB84


def build_assumptions_manifest(schema_version: str) -> Dict[str, Any]:
    """Return a stable, machine-readable assumptions manifest."""
    return {
        "schema_version": schema_version,
        "protocol": {
            "name": "BB84",
            "qber_threshold": QBER_THRESHOLD_BB84,
            "threshold_rule": "Q > threshold aborts; Q == threshold is accepted.",
        },
        "finite_key": {
            "equation": EQUATION,
            "penalty": "Δ = 2·log2(1/ε_cor) + 4·log2(1/(2·ε_sec))·sqrt(N·Q·(1-Q))",
            "binary_entropy": "h2(q) = 0 for q <= 0 or q >= 1",
            "clamp": "Negative secure rates are reported as 0.",
            "defaults": {
                "ec_efficiency_beta": DEFAULT_EC_EFFICIENCY,
                "ec_efficiency_note": "Typical Cascade reconciliation overhead.",
                "epsilon": "A single security.epsilon is used for both ε_sec and ε_cor "
                           "when neither is given.",
            },
            "epsilon_policy": "ε_sec and ε_cor must be > 0; otherwise the calculation "
                              "fails with a computation error.",
        },
        "provenance": {
            "pre_extracted_confidence": EXTRACTOR_CONFIDENCE,
            "offline_enrichment_confidence": ENRICHMENT_CONFIDENCE,
            "precedence": "Pre-extracted values and provenance win over enrichment.",
        },
        "disclaimers": {
            "inputs": "Vendor-reported values are taken at face value; no parameter "
                      "estimation bounds are applied to the reported QBER.",
            "security_proof": "Closed-form finite-key estimate; not a composable "
                              "security certificate.",
        },
    }
