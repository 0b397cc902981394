"""Tests for provenance.py - merging pre-extracted and enriched records."""
from qkd_record_lab.provenance import merge, merge_provenance, overlay, reconcile
from qkd_record_lab.schema import empty_record, get_path


def _entry(field, snippet, score):
    return {"field": field, "snippet": snippet, "confidence_score": score}


def _high():
    record = empty_record()
    record["security"] = {"qber_total": 0.026, "sifted_bits": 1500000}
    record["_provenance"] = [
        _entry("security.qber_total", "qber_total: 0.026", 1.0),
        _entry("security.sifted_bits", "sifted_bits: 1_500_000", 1.0),
    ]
    return record


def _low():
    record = empty_record()
    record["security"] = {"qber_total": 0.026, "sifted_bits": 1500000, "epsilon": 1e-9}
    record["meta"] = {"vendor": "Toshiba"}
    record["_provenance"] = [
        _entry("meta.vendor", "Vendor Toshiba", 0.8),
        _entry("security.qber_total", "QBER 2.6%", 0.7),
        _entry("security.epsilon", "eps=1e-9", 0.9),
    ]
    return record


def test_high_trust_entry_wins_for_shared_path():
    """Shared paths keep only the pre-extracted entry."""
    merged = merge(_high(), _low())
    qber_entries = [p for p in merged["_provenance"] if p["field"] == "security.qber_total"]
    assert qber_entries == [_entry("security.qber_total", "qber_total: 0.026", 1.0)]


def test_order_high_then_filtered_low():
    """High-trust entries come first, then unseen low-trust ones."""
    fields = [p["field"] for p in merge_provenance(_high(), _low())]
    assert fields == [
        "security.qber_total",
        "security.sifted_bits",
        "meta.vendor",
        "security.epsilon",
    ]


def test_merge_does_not_touch_values():
    """Values come from the low-trust record unchanged."""
    low = _low()
    low["security"]["qber_total"] = 0.5
    merged = merge(_high(), low)
    assert get_path(merged, "security.qber_total") == 0.5
    assert get_path(merged, "meta.vendor") == "Toshiba"


def test_merge_does_not_mutate_inputs():
    high, low = _high(), _low()
    merge(high, low)
    assert len(low["_provenance"]) == 3
    assert len(high["_provenance"]) == 2


def test_missing_provenance_lists():
    """Records without provenance merge to an empty list."""
    merged = merge({"security": {}}, {"security": {"qber_total": 0.02}})
    assert merged["_provenance"] == []
    assert merged["notes"] is None
    assert merged["dwdm"] == {}


def test_overlay_prefers_non_null_high_values():
    """Non-null high-trust leaves win; null sections pass through."""
    high = empty_record()
    high["security"] = {"qber_total": 0.02, "epsilon": None}
    low = empty_record()
    low["security"] = {"qber_total": 0.05, "epsilon": 1e-9}
    low["dwdm"] = None
    combined = overlay(high, low)
    assert get_path(combined, "security.qber_total") == 0.02
    assert get_path(combined, "security.epsilon") == 1e-9
    assert combined["dwdm"] is None


def test_reconcile_combines_values_and_provenance():
    """reconcile overlays values and merges provenance in one step."""
    low = _low()
    low["security"]["qber_total"] = 0.3
    record = reconcile(_high(), low)
    assert get_path(record, "security.qber_total") == 0.026
    assert get_path(record, "security.epsilon") == 1e-9
    fields = [p["field"] for p in record["_provenance"]]
    assert len(fields) == len(set(fields))
