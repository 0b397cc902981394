"""
Boundary to the enrichment collaborator.

The pre-extractor's partial record and remaining text are sent out as an
:class:`EnrichmentRequest`; an enricher answers with a canonical-shaped
record carrying its own (lower-confidence) provenance. Any callable
``(EnrichmentRequest) -> Mapping`` can act as an enricher. The offline
enrichers here cover JSON and CSV vendor exports and replaying a captured
collaborator response from disk.
"""
from __future__ import annotations

import csv
from dataclasses import dataclass
import io
import json
import logging
from pathlib import Path
import re
from typing import Any, Callable, Dict, List, Mapping

from .helpers import coerce_value
from .schema import (
    KEY_MAP,
    PROVENANCE_KEY,
    SECTIONS,
    empty_record,
    normalize_key,
    set_path,
)

logger = logging.getLogger(__name__)

ENRICHMENT_CONFIDENCE = 0.9

_FENCE_RE = re.compile(r"```json\s*([\s\S]*?)\s*```")


class EnrichmentError(ValueError):
    """Raised when enrichment input or a collaborator response is unusable."""


@dataclass(frozen=True)
class EnrichmentRequest:
    """Pre-extracted record plus the text left for enrichment.

    ``structured`` is True when the pre-extractor declined the raw input as
    a JSON or CSV export, in which case ``remaining`` is that whole export.
    """
    partial: Mapping[str, Any]
    remaining: str
    structured: bool = False

    def render(self) -> str:
        """Text payload handed to a language-model collaborator."""
        remaining = self.remaining or (
            "No remaining logs. Just ensure the final JSON structure is "
            "complete based on the pre-parsed data."
        )
        return (
            "This is a hybrid parsing job. Start with the pre-parsed data and enrich it "
            "by parsing the remaining text to create a complete JSON object.\n\n"
            "[PRE-PARSED DATA (Confidence: 1.0)]\n"
            f"{json.dumps(self.partial, indent=2)}\n\n"
            "[REMAINING LOGS TO PARSE]\n"
            f"{remaining}\n"
        )


Enricher = Callable[[EnrichmentRequest], Mapping[str, Any]]


def parse_enrichment_response(text: str) -> Dict[str, Any]:
    """
    Parse a collaborator response into a record dict.

    Accepts bare JSON or JSON wrapped in a ```json fence.
    """
    match = _FENCE_RE.search(text)
    payload = match.group(1).strip() if match else text.strip()
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        logger.warning("Unparseable enrichment response: %.200s", payload)
        raise EnrichmentError("The enrichment collaborator returned an invalid response.") from exc
    if not isinstance(data, dict):
        raise EnrichmentError(
            f"Enrichment response must be a JSON object, got {type(data).__name__}"
        )
    return data


def _entry(path: str, snippet: str) -> Dict[str, Any]:
    return {"field": path, "snippet": snippet, "confidence_score": ENRICHMENT_CONFIDENCE}


def _record_from_flat(rows: Mapping[str, Any], snippet_fmt: str) -> Dict[str, Any]:
    record = empty_record()
    provenance: List[Dict[str, Any]] = []
    for key, value in rows.items():
        if key is None or value is None or value == "":
            continue
        path = KEY_MAP.get(normalize_key(str(key)))
        if path is None:
            continue
        if isinstance(value, str):
            value = coerce_value(value.strip())
        set_path(record, path, value)
        provenance.append(_entry(path, snippet_fmt.format(key=key, value=value)))
    record[PROVENANCE_KEY] = provenance
    return record


def null_enricher(request: EnrichmentRequest) -> Dict[str, Any]:
    """Contribute nothing; the pre-extracted record stands alone."""
    return empty_record()


class JsonDocumentEnricher:
    """Map a JSON vendor export onto the canonical record.

    Nested documents are read section by section; flat documents go
    through the same key table as the pre-extractor.
    """

    def __call__(self, request: EnrichmentRequest) -> Dict[str, Any]:
        try:
            doc = json.loads(request.remaining)
        except json.JSONDecodeError as exc:
            raise EnrichmentError(
                "Malformed input: upload valid JSON or use a sample dataset "
                f"(check JSON syntax near line {exc.lineno})."
            ) from exc
        if isinstance(doc, list):
            doc = next((item for item in doc if isinstance(item, dict)), {})
        if not isinstance(doc, dict):
            raise EnrichmentError("JSON input must be an object or a list of objects.")

        if not any(isinstance(doc.get(section), dict) for section in SECTIONS):
            return _record_from_flat(doc, '"{key}": {value}')

        record = empty_record()
        provenance: List[Dict[str, Any]] = []
        for section in SECTIONS:
            if section not in doc:
                continue
            values = doc[section]
            if not isinstance(values, dict):
                # explicit null section, e.g. "dwdm": null
                record[section] = None
                continue
            for key, value in values.items():
                if isinstance(value, (dict, list)):
                    continue
                record[section][key] = value
                if value is not None:
                    provenance.append(
                        _entry(f"{section}.{key}", f'"{key}": {json.dumps(value)}')
                    )
        if isinstance(doc.get("notes"), str):
            record["notes"] = doc["notes"]
        record[PROVENANCE_KEY] = provenance
        return record


class CsvRowEnricher:
    """Map the first data row of a CSV export onto the canonical record."""

    def __call__(self, request: EnrichmentRequest) -> Dict[str, Any]:
        reader = csv.DictReader(io.StringIO(request.remaining.strip()))
        row = next(reader, None)
        if row is None:
            raise EnrichmentError("CSV input has a header but no data rows.")
        return _record_from_flat(row, "{key},{value}")


@dataclass(frozen=True)
class FileEnricher:
    """Replay a captured collaborator response stored on disk."""
    path: str

    def __call__(self, request: EnrichmentRequest) -> Dict[str, Any]:
        response_path = Path(self.path)
        if not response_path.exists():
            raise FileNotFoundError(f"Enrichment response not found: {self.path}")
        with open(response_path, "r") as f:
            return parse_enrichment_response(f.read())


def auto_enricher(request: EnrichmentRequest) -> Dict[str, Any]:
    """Choose an offline enricher from the pre-extractor's guard decision.

    Declined JSON exports go to :class:`JsonDocumentEnricher` and declined
    CSV tables to :class:`CsvRowEnricher`. Lines left over from a scanned
    ``key: value`` log are free text and contribute nothing offline.
    """
    if not request.structured:
        return null_enricher(request)
    if request.remaining.strip().startswith(("{", "[")):
        return JsonDocumentEnricher()(request)
    return CsvRowEnricher()(request)
