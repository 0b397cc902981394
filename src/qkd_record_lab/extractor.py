"""
Deterministic pre-extraction of ``key: value`` lines from vendor logs.

Recognized keys are written to the canonical record with confidence 1.0;
everything else is passed through as remaining text for the enrichment
stage. JSON and CSV inputs are left untouched.
"""
from __future__ import annotations

from dataclasses import dataclass
import re
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from .helpers import coerce_value
from .schema import (
    KEY_MAP,
    PROVENANCE_KEY,
    ProvenanceEntry,
    empty_record,
    normalize_key,
    set_path,
)


LINE_RE = re.compile(r"^\s*([^:]+):\s*(.+)$")

EXTRACTOR_CONFIDENCE = 1.0


@dataclass(frozen=True)
class ExtractedField:
    path: str
    value: Union[int, float, str]
    line: str

    def provenance(self) -> ProvenanceEntry:
        return ProvenanceEntry(
            field=self.path,
            snippet=self.line,
            confidence_score=EXTRACTOR_CONFIDENCE,
        )


def is_structured_input(raw: str) -> bool:
    """True when the text looks like a JSON document or a CSV table."""
    trimmed = raw.strip()
    if trimmed.startswith("{") and trimmed.endswith("}"):
        return True
    if trimmed.startswith("[") and trimmed.endswith("]"):
        return True
    first_line = raw.split("\n", 1)[0]
    return "," in first_line


def match_line(line: str) -> Optional[ExtractedField]:
    """Map one log line to a canonical field, or None if it is not recognized."""
    match = LINE_RE.match(line)
    if match is None:
        return None
    path = KEY_MAP.get(normalize_key(match.group(1)))
    value = match.group(2).strip()
    if path is None or not value:
        return None
    return ExtractedField(path=path, value=coerce_value(value), line=line)


def scan_lines(raw: str) -> Iterator[Tuple[str, Optional[ExtractedField]]]:
    """
    Yield ``(line, field)`` for each line of ``raw``.

    ``field`` is None for lines that belong in the remaining text. The scan
    keeps no state between calls, so it can be restarted at will.
    """
    for line in raw.split("\n"):
        if line.endswith("\r"):
            line = line[:-1]
        yield line, match_line(line)


def extract(raw: str) -> Tuple[Dict[str, Any], str]:
    """
    Pre-extract recognized fields from raw vendor text.

    Parameters
    ----------
    raw : str
        Vendor log text.

    Returns
    -------
    tuple
        ``(partial, remaining)``: a canonical record holding the extracted
        fields and their provenance, and the unrecognized lines joined in
        their original order. Structured (JSON/CSV) input is returned whole
        as ``remaining`` with an empty partial record.

    When a path is set by more than one line the last line wins, and only
    its provenance entry is kept.
    """
    partial = empty_record()
    if is_structured_input(raw):
        return partial, raw

    remaining: List[str] = []
    entries: Dict[str, ProvenanceEntry] = {}
    for line, field in scan_lines(raw):
        if field is None:
            remaining.append(line)
            continue
        set_path(partial, field.path, field.value)
        entries.pop(field.path, None)
        entries[field.path] = field.provenance()

    partial[PROVENANCE_KEY] = [entry.to_dict() for entry in entries.values()]
    return partial, "\n".join(remaining).strip()
