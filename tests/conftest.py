"""Pytest configuration and shared fixtures for qkd-record-lab tests."""
import pytest

from qkd_record_lab.samples import get_sample
from qkd_record_lab.schema import empty_record


# ============================================================================
# RECORD FIXTURES
# ============================================================================

@pytest.fixture
def reference_record():
    """Canonical record for the Toshiba reference session (single epsilon)."""
    record = empty_record()
    record["security"] = {
        "epsilon": 1e-9,
        "qber_total": 0.026,
        "sifted_bits": 1500000,
        "sifted_key_rate_bps": 180000,
    }
    return record


@pytest.fixture
def blank_record():
    """Canonical record with every section empty."""
    return empty_record()


# ============================================================================
# RAW LOG FIXTURES
# ============================================================================

@pytest.fixture
def cdot_table_log():
    """C-DOT key/value table export."""
    return get_sample("H4").text


@pytest.fixture
def toshiba_json_log():
    """Toshiba JSON export."""
    return get_sample("H1").text
