"""Minimal sanity smoke test for package imports."""


def test_package_import() -> None:
    """Test that the main package imports without error."""
    import qkd_record_lab
    assert qkd_record_lab is not None


def test_assumptions_manifest_is_stable() -> None:
    from qkd_record_lab.assumptions import build_assumptions_manifest

    first = build_assumptions_manifest("1.0")
    assert first == build_assumptions_manifest("1.0")
    assert first["finite_key"]["defaults"]["ec_efficiency_beta"] == 1.1
