from __future__ import annotations
import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

SCHEMA_VERSION = "1.0"

from .helpers import validate_float, validate_int
from .assumptions import build_assumptions_manifest
from .enrichment import FileEnricher, auto_enricher
from .extractor import extract
from .finite_key import QBER_THRESHOLD_BB84, FiniteKeyDefaults, compute_skr
from .pipeline import process_logs
from .samples import SAMPLES, get_sample
from .sweep import compute_summary_stats, qber_grid, sweep_qber


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="qkd-record-lab",
        description="Normalize QKD vendor logs and compute finite-key secure key rates.",
    )
    p.add_argument("--log-level", default="WARNING",
                   choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                   help="Logging verbosity (default: WARNING)")
    sub = p.add_subparsers(dest="cmd", required=True)

    # --- extract command ---
    e = sub.add_parser("extract", help="Pre-extract key: value fields from raw logs.")
    e_src = e.add_mutually_exclusive_group(required=True)
    e_src.add_argument("input", nargs="?", help="Log file path, or - for stdin")
    e_src.add_argument("--sample", help="Bundled sample id (see 'samples')")
    e.add_argument("--remaining", action="store_true",
                   help="Also print the unrecognized text left for enrichment")

    # --- skr command ---
    k = sub.add_parser("skr", help="Compute finite-key SKR from a canonical record JSON file.")
    k.add_argument("record", help="Canonical record JSON file, or - for stdin")
    k.add_argument("--ec-efficiency", type=float, default=None,
                   help="Default beta when the record has none (default: 1.1)")

    # --- process command ---
    r = sub.add_parser("process", help="Run extract -> enrich -> merge -> SKR and write a report.")
    r_src = r.add_mutually_exclusive_group(required=True)
    r_src.add_argument("input", nargs="?", help="Log file path, or - for stdin")
    r_src.add_argument("--sample", help="Bundled sample id (see 'samples')")
    r.add_argument("--enrichment", default=None,
                   help="Captured enrichment response (JSON) to merge instead of offline enrichment")
    r.add_argument("--ec-efficiency", type=float, default=None,
                   help="Default beta when the record has none (default: 1.1)")
    r.add_argument("--outdir", type=str, default=".",
                   help="Output directory for reports (default: .)")

    # --- sweep command ---
    s = sub.add_parser("sweep", help="Sweep QBER for a canonical record and summarize SKR.")
    s.add_argument("record", help="Canonical record JSON file, or - for stdin")
    s.add_argument("--qber-min", type=float, default=0.0)
    s.add_argument("--qber-max", type=float, default=QBER_THRESHOLD_BB84)
    s.add_argument("--steps", type=int, default=12)

    sub.add_parser("samples", help="List bundled vendor log samples.")
    sub.add_parser("assumptions", help="Print the assumptions manifest.")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    try:
        _validate_args(args)
    except ValueError as exc:
        p.error(str(exc))

    if args.cmd == "extract":
        return _run_extract(args)
    if args.cmd == "skr":
        return _run_skr(args)
    if args.cmd == "process":
        return _run_process(args)
    if args.cmd == "sweep":
        return _run_sweep(args)
    if args.cmd == "samples":
        for sample in SAMPLES:
            print(f"{sample.sample_id}\t{sample.name}\t{sample.description}")
        return 0
    _print_json(build_assumptions_manifest(SCHEMA_VERSION))
    return 0


def _validate_args(args: argparse.Namespace) -> None:
    """Validate CLI arguments after parsing."""
    if getattr(args, "sample", None):
        get_sample(args.sample)
    if getattr(args, "ec_efficiency", None) is not None:
        validate_float("ec-efficiency", args.ec_efficiency, min_value=1.0)
    if args.cmd == "sweep":
        validate_float("qber-min", args.qber_min, min_value=0.0, max_value=0.5)
        validate_float("qber-max", args.qber_max, min_value=0.0, max_value=0.5)
        if args.qber_min > args.qber_max:
            raise ValueError(f"qber-min ({args.qber_min}) > qber-max ({args.qber_max})")
        validate_int("steps", args.steps, min_value=1)


def _read_text(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    text_path = Path(path)
    if not text_path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")
    return text_path.read_text()


def _load_raw(args: argparse.Namespace) -> str:
    if args.sample:
        return get_sample(args.sample).text
    return _read_text(args.input)


def _load_record(path: str) -> Dict[str, Any]:
    data = json.loads(_read_text(path))
    if not isinstance(data, dict):
        raise ValueError("Record JSON must be an object.")
    # accept a full report as well as a bare record
    return data.get("normalized_data", data)


def _defaults(args: argparse.Namespace) -> FiniteKeyDefaults:
    if args.ec_efficiency is None:
        return FiniteKeyDefaults()
    return FiniteKeyDefaults(ec_efficiency=args.ec_efficiency)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _run_extract(args: argparse.Namespace) -> int:
    partial, remaining = extract(_load_raw(args))
    output: Dict[str, Any] = {"partial": partial}
    if args.remaining:
        output["remaining"] = remaining
    _print_json(output)
    return 0


def _run_skr(args: argparse.Namespace) -> int:
    result = compute_skr(_load_record(args.record), _defaults(args))
    _print_json(result.to_dict())
    return 0 if result.ok else 1


def _run_process(args: argparse.Namespace) -> int:
    """Execute the full record pipeline and write reports/latest.json."""
    enricher = FileEnricher(args.enrichment) if args.enrichment else auto_enricher
    processed = process_logs(_load_raw(args), enricher=enricher, defaults=_defaults(args))

    outdir = Path(args.outdir)
    (outdir / "reports").mkdir(parents=True, exist_ok=True)
    report = {
        "schema_version": SCHEMA_VERSION,
        "generated_utc": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "source": {"sample": args.sample, "input": args.input, "enrichment": args.enrichment},
        **processed.to_dict(),
        "assumptions": build_assumptions_manifest(SCHEMA_VERSION),
    }
    report_path = outdir / "reports" / "latest.json"
    with open(report_path, "w") as f:
        json.dump(report, f, indent=2, ensure_ascii=False)
        f.write("\n")  # Ensure trailing newline

    skr = processed.finite_key_skr
    if skr.ok:
        print(f"R_secure_bps: {skr.R_secure_bps:.3f}")
    else:
        print("SKR error:", skr.error)
    print("Wrote:", report_path)
    return 0


def _run_sweep(args: argparse.Namespace) -> int:
    record = _load_record(args.record)
    results = sweep_qber(record, qber_grid(args.qber_min, args.qber_max, args.steps))
    _print_json({
        "parameters": {"qber_min": args.qber_min, "qber_max": args.qber_max, "steps": args.steps},
        "qber_sweep": results,
        "summary_stats": compute_summary_stats(results),
    })
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
