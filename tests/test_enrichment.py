"""Tests for enrichment.py - collaborator boundary and offline enrichers."""
import json

import pytest

from qkd_record_lab.enrichment import (
    ENRICHMENT_CONFIDENCE,
    CsvRowEnricher,
    EnrichmentError,
    EnrichmentRequest,
    FileEnricher,
    JsonDocumentEnricher,
    auto_enricher,
    null_enricher,
    parse_enrichment_response,
)
from qkd_record_lab.extractor import extract, is_structured_input
from qkd_record_lab.samples import get_sample
from qkd_record_lab.schema import empty_record, get_path


def _request(raw):
    partial, remaining = extract(raw)
    return EnrichmentRequest(partial, remaining, structured=is_structured_input(raw))


class TestRequestRendering:
    """Test EnrichmentRequest.render payload."""

    def test_blocks_present(self):
        """Pre-parsed block comes first, remaining text last."""
        text = _request("qber_total: 0.02\nLink looked stable").render()
        assert "[PRE-PARSED DATA (Confidence: 1.0)]" in text
        assert '"qber_total": 0.02' in text
        assert text.rstrip().endswith("Link looked stable")

    def test_placeholder_when_nothing_remains(self):
        text = _request("qber_total: 0.02").render()
        assert "No remaining logs." in text


class TestResponseParsing:
    """Test parse_enrichment_response."""

    def test_bare_json(self):
        assert parse_enrichment_response('{"meta": {"vendor": "IDQ"}}') == {"meta": {"vendor": "IDQ"}}

    def test_fenced_json(self):
        """A ```json fence around the payload is stripped."""
        text = 'Here you go:\n```json\n{"security": {"epsilon": 1e-9}}\n```\n'
        assert parse_enrichment_response(text) == {"security": {"epsilon": 1e-9}}

    def test_invalid_json(self):
        with pytest.raises(EnrichmentError, match="invalid response"):
            parse_enrichment_response("not json")

    def test_non_object(self):
        """A JSON array is not a record."""
        with pytest.raises(EnrichmentError):
            parse_enrichment_response("[1, 2]")


class TestOfflineEnrichers:
    """Test the offline enrichers on bundled samples."""

    def test_null_enricher(self):
        assert null_enricher(_request("x")) == empty_record()

    def test_json_document(self):
        """Nested JSON exports map section by section at confidence 0.9."""
        record = JsonDocumentEnricher()(_request(get_sample("H1").text))
        assert get_path(record, "security.qber_total") == 0.026
        assert get_path(record, "meta.run_id") == "TSH-2025-09-08-001"
        assert record["dwdm"] is None
        entry = next(p for p in record["_provenance"] if p["field"] == "security.epsilon")
        assert entry == {"field": "security.epsilon", "snippet": '"epsilon": 1e-09', "confidence_score": ENRICHMENT_CONFIDENCE}

    def test_flat_json_document(self):
        """Flat JSON keys go through the key table; unknown keys are dropped."""
        record = JsonDocumentEnricher()(_request('{"QBER_total": 0.03, "vendor": "IDQ", "laser": 1}'))
        assert get_path(record, "security.qber_total") == 0.03
        assert get_path(record, "meta.vendor") == "IDQ"
        assert len(record["_provenance"]) == 2

    def test_malformed_json(self):
        """A declined JSON export that does not parse is reported as malformed."""
        raw = '{\n  "meta": {"vendor": "Toshiba",}\n}'
        with pytest.raises(EnrichmentError, match="Malformed input"):
            auto_enricher(_request(raw))

    def test_csv_row(self):
        """The first data row of a CSV export is mapped."""
        record = CsvRowEnricher()(_request(get_sample("H2").text))
        assert get_path(record, "meta.vendor") == "IDQ"
        assert get_path(record, "security.sifted_bits") == 1200000
        assert get_path(record, "link.fiber_loss_dB") == 8.4
        assert get_path(record, "security.basis_reconciliation") == "Cascade"
        assert all(p["confidence_score"] == ENRICHMENT_CONFIDENCE for p in record["_provenance"])

    def test_csv_without_rows(self):
        with pytest.raises(EnrichmentError):
            CsvRowEnricher()(EnrichmentRequest(empty_record(), "a,b,c", structured=True))

    def test_file_enricher(self, tmp_path):
        """A captured fenced response is replayed from disk."""
        path = tmp_path / "response.json"
        path.write_text("```json\n" + json.dumps({"security": {"epsilon": 1e-10}}) + "\n```")
        record = FileEnricher(str(path))(_request("qber_total: 0.02"))
        assert record == {"security": {"epsilon": 1e-10}}

    def test_file_enricher_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            FileEnricher(str(tmp_path / "nope.json"))(_request("x"))


class TestAutoDispatch:
    """auto_enricher follows the pre-extractor's guard decision."""

    def test_declined_inputs(self):
        """JSON and CSV exports reach their enrichers; tables contribute nothing."""
        assert get_path(auto_enricher(_request(get_sample("H1").text)), "meta.vendor") == "Toshiba"
        assert get_path(auto_enricher(_request(get_sample("H2").text)), "meta.vendor") == "IDQ"
        assert auto_enricher(_request(get_sample("H4").text)) == empty_record()

    def test_leftover_line_with_comma(self):
        """A comma in leftover free text does not make it a CSV table."""
        request = _request("vendor: CDOT\nqber_total: 0.02\noperator note: spool A, lab 2")
        assert request.remaining == "operator note: spool A, lab 2"
        assert not request.structured
        assert auto_enricher(request) == empty_record()

    def test_leftover_line_with_brace(self):
        """A leftover line starting with a brace is not a JSON export."""
        request = _request("{session header}\nvendor: CDOT\nqber_total: 0.02")
        assert request.remaining == "{session header}"
        assert auto_enricher(request) == empty_record()

    def test_unbalanced_brace_is_free_text(self):
        """Text the pre-extractor scanned is never parsed as JSON."""
        assert auto_enricher(_request('{\n"meta": {}\n// MISSING closing brace')) == empty_record()
