"""
Bundled vendor log samples.

Each sample is a realistic export from a QKD vendor, covering the input
shapes the pipeline handles (JSON, CSV, key/value table) and the
calculator's failure modes.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List


@dataclass(frozen=True)
class SampleLog:
    """A named vendor log with the outcome it is meant to exercise."""

    sample_id: str
    name: str
    description: str
    text: str


SAMPLES: List[SampleLog] = [
    SampleLog(
        sample_id="H1",
        name="Toshiba (JSON)",
        description="Complete JSON export with a single epsilon",
        text="""
{
  "meta": {
    "vendor": "Toshiba",
    "model": "TQKD-1000",
    "run_id": "TSH-2025-09-08-001",
    "protocol": "BB84",
    "link_type": "fiber",
    "profile": "lab",
    "firmware_version": "3.1.2",
    "timestamp": "2025-09-08T10:15:00Z"
  },
  "link": {
    "distance_km": 25.2,
    "fiber_loss_dB": 5.2,
    "alpha_dB_per_km": 0.20
  },
  "security": {
    "epsilon": 1e-9,
    "qber_total": 0.026,
    "sifted_bits": 1500000,
    "sifted_key_rate_bps": 180000,
    "basis_reconciliation": "Cascade",
    "authentication": "Wegman-Carter"
  },
  "detector": { "count_rate_Mcps": 8.5, "max_Mcps": 20 },
  "dwdm": null
}""",
    ),
    SampleLog(
        sample_id="H2",
        name="IDQ (CSV)",
        description="Single-row CSV export without epsilon",
        text=(
            "timestamp,vendor,model,run_id,protocol,link_type,profile,firmware_version,"
            "distance_km,fiber_loss_dB,alpha_dB_per_km,qber_total,sifted_bits,"
            "sifted_key_rate_bps,basis_reconciliation,authentication\n"
            "2025-09-08T09:00:00Z,IDQ,Clavis3000,IDQ-0908-001,BB84,fiber,field,5.0.0,"
            "40,8.4,0.21,0.031,1200000,150000,Cascade,Wegman-Carter"
        ),
    ),
    SampleLog(
        sample_id="H4",
        name="C-DOT (Table)",
        description="Key/value table with underscore-grouped numerals",
        text="""
timestamp: 2025-09-08T07:30:00Z
vendor: CDOT
model: Sahasra
run_id: CDOT-0730-101
protocol: BB84
link_type: fiber
profile: field
firmware_version: 1.4.7
distance_km: 10.0
fiber_loss_dB: 2.1
alpha_dB_per_km: 0.20
qber_total: 0.02
sifted_bits: 1_050_000
sifted_key_rate_bps: 200000
basis_reconciliation: Cascade
authentication: Wegman-Carter
detector_count_rate_Mcps: 9.0
detector_max_Mcps: 20
""",
    ),
    SampleLog(
        sample_id="N1",
        name="Missing Epsilon",
        description="JSON export lacking any security parameter",
        text="""
{
  "meta": {
    "vendor": "IDQ",
    "model": "Clavis3000",
    "run_id": "IDQ-0908-002",
    "protocol": "BB84",
    "link_type": "fiber",
    "profile": "field",
    "firmware_version": "5.0.0",
    "timestamp": "2025-09-08T11:00:00Z"
  },
  "link": { "distance_km": 40, "fiber_loss_dB": 8.4, "alpha_dB_per_km": 0.21 },
  "security": {
    "qber_total": 0.031,
    "sifted_bits": 1200000,
    "sifted_key_rate_bps": 120000,
    "basis_reconciliation": "Cascade",
    "authentication": "Wegman-Carter"
  }
}""",
    ),
    SampleLog(
        sample_id="N2",
        name="High QBER",
        description="QBER above the BB84 threshold",
        text="""
{
  "meta": {
    "vendor": "Toshiba", "model": "TQKD-1000", "run_id": "TSH-2025-09-08-ERR", "protocol": "BB84", "link_type": "fiber", "profile": "lab", "firmware_version": "3.1.2", "timestamp": "2025-09-08T12:00:00Z"
  },
  "link": { "distance_km": 20, "fiber_loss_dB": 4.0, "alpha_dB_per_km": 0.20 },
  "security": { "epsilon": 1e-9, "qber_total": 0.18, "sifted_bits": 1600000, "sifted_key_rate_bps": 50000, "basis_reconciliation": "Cascade", "authentication": "Wegman-Carter"
  }
}""",
    ),
    SampleLog(
        sample_id="E3",
        name="Saturation",
        description="Detector count rate above its maximum",
        text="""
{
  "meta": { "vendor": "Toshiba", "model": "TQKD-1000", "run_id": "TSH-SAT-001", "protocol": "BB84", "link_type": "fiber", "profile": "lab", "firmware_version": "3.1.2", "timestamp": "2025-09-08T13:15:00Z"
  },
  "link": { "distance_km": 5, "fiber_loss_dB": 1.0, "alpha_dB_per_km": 0.20 },
  "security": { "epsilon": 1e-9, "qber_total": 0.02, "sifted_bits": 900000, "sifted_key_rate_bps": 1000000, "basis_reconciliation": "Cascade", "authentication": "Wegman-Carter"
  },
  "detector": { "count_rate_Mcps": 25, "max_Mcps": 20 }
}""",
    ),
]

SAMPLES_BY_ID: Dict[str, SampleLog] = {sample.sample_id: sample for sample in SAMPLES}


def get_sample(sample_id: str) -> SampleLog:
    """Look up a sample by id (case-insensitive)."""
    try:
        return SAMPLES_BY_ID[sample_id.upper()]
    except KeyError:
        raise ValueError(
            f"Unknown sample {sample_id!r}; choose from {', '.join(SAMPLES_BY_ID)}"
        ) from None
