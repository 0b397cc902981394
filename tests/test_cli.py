import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

from qkd_record_lab.run import main

SRC = str(Path(__file__).resolve().parents[1] / "src")


def _run_module(*args):
    env = dict(os.environ)
    env["PYTHONPATH"] = SRC + os.pathsep + env.get("PYTHONPATH", "")
    return subprocess.run(
        [sys.executable, "-m", "qkd_record_lab.run", *args],
        capture_output=True,
        text=True,
        check=False,
        env=env,
    )


def test_main_help():
    """Top-level help lists every subcommand."""
    result = _run_module("--help")
    assert result.returncode == 0
    for cmd in ("extract", "skr", "process", "sweep", "samples", "assumptions"):
        assert cmd in result.stdout


def test_process_help():
    """Process help documents its source and output options."""
    result = _run_module("process", "--help")
    assert result.returncode == 0
    assert "--sample" in result.stdout
    assert "--enrichment" in result.stdout
    assert "--outdir" in result.stdout


def test_extract_sample(capsys):
    """Sample ids are case-insensitive; remaining text is opt-in."""
    assert main(["extract", "--sample", "h4"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["partial"]["security"]["sifted_bits"] == 1050000
    assert "remaining" not in out

    assert main(["extract", "--sample", "h4", "--remaining"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["partial"]["security"]["sifted_bits"] == 1050000
    assert out["remaining"] == ""


def test_extract_file(tmp_path, capsys):
    """Unrecognized lines are printed with --remaining."""
    path = tmp_path / "session.log"
    path.write_text("vendor: IDQ\nlaser ok\n")
    assert main(["extract", str(path), "--remaining"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["partial"]["meta"]["vendor"] == "IDQ"
    assert out["remaining"] == "laser ok"


def test_skr_exit_codes(tmp_path, capsys):
    """skr exits 1 when the result carries an error."""
    good = tmp_path / "good.json"
    good.write_text(json.dumps({"security": {
        "epsilon": 1e-9, "qber_total": 0.026, "sifted_bits": 1500000, "sifted_key_rate_bps": 180000,
    }}))
    assert main(["skr", str(good)]) == 0
    assert json.loads(capsys.readouterr().out)["R_secure_bps"] > 0

    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"security": {}}))
    assert main(["skr", str(bad)]) == 1
    assert "Missing required fields" in json.loads(capsys.readouterr().out)["error"]


def test_process_writes_report(tmp_path, capsys):
    """process writes reports/latest.json with the assumptions manifest."""
    assert main(["process", "--sample", "H1", "--outdir", str(tmp_path)]) == 0
    assert "Wrote:" in capsys.readouterr().out
    report = json.loads((tmp_path / "reports" / "latest.json").read_text())
    assert report["generated_utc"].endswith("Z")
    assert report["normalized_data"]["meta"]["vendor"] == "Toshiba"
    assert report["finite_key_skr"]["R_secure_bps"] > 0
    assert report["assumptions"]["protocol"]["qber_threshold"] == 0.11


def test_process_with_captured_enrichment(tmp_path, capsys):
    """A captured response fills gaps without overriding extracted values."""
    log = tmp_path / "cdot.log"
    log.write_text("qber_total: 0.02\nsifted_bits: 1_050_000\nsifted_key_rate_bps: 200000\neps 1e-9")
    response = tmp_path / "enrichment.json"
    response.write_text(json.dumps({
        "security": {"qber_total": 0.05, "epsilon": 1e-9},
        "_provenance": [{"field": "security.epsilon", "snippet": "eps 1e-9", "confidence_score": 0.8}],
    }))
    assert main(["process", str(log), "--enrichment", str(response), "--outdir", str(tmp_path)]) == 0
    report = json.loads((tmp_path / "reports" / "latest.json").read_text())
    assert report["normalized_data"]["security"]["qber_total"] == 0.02
    assert "error" not in report["finite_key_skr"]
    assert report["finite_key_skr"]["inputs"]["eps_sec"] == 1e-9


def test_sweep_command(tmp_path, capsys):
    """sweep prints one point per step and a summary."""
    record = tmp_path / "record.json"
    record.write_text(json.dumps({"security": {
        "epsilon": 1e-9, "qber_total": 0.026, "sifted_bits": 1500000, "sifted_key_rate_bps": 180000,
    }}))
    assert main(["sweep", str(record), "--steps", "5"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert len(out["qber_sweep"]) == 5
    assert out["summary_stats"]["n_errors"] == 0


def test_invalid_arguments_exit():
    """Bad arguments are rejected by the parser."""
    with pytest.raises(SystemExit):
        main(["sweep", "record.json", "--qber-min", "0.2", "--qber-max", "0.1"])
    with pytest.raises(SystemExit):
        main(["extract", "--sample", "ZZ"])


def test_process_table_with_notes(tmp_path, capsys):
    """A key/value log with free-text notes is processed end to end."""
    log = tmp_path / "cdot.log"
    log.write_text(
        "vendor: CDOT\nqber_total: 0.02\nsifted_bits: 1_050_000\n"
        "sifted_key_rate_bps: 200000\nepsilon: 1e-9\noperator note: spool A, lab 2\n"
    )
    assert main(["process", str(log), "--outdir", str(tmp_path)]) == 0
    assert "R_secure_bps:" in capsys.readouterr().out
    report = json.loads((tmp_path / "reports" / "latest.json").read_text())
    assert report["normalized_data"]["meta"]["vendor"] == "CDOT"
