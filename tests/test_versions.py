from vulnrange.models import NormalizedVersion
from vulnrange.versions import canonicalize, normalize_exclusive_bound


def test_exclusive_bound_decrements_patch():
    assert normalize_exclusive_bound("5.7.12") == "5.7.11"
    assert normalize_exclusive_bound("5.7.30") == "5.7.29"


def test_exclusive_bound_zero_patch_borrows_from_minor():
    assert normalize_exclusive_bound("5.7.0") == "5.6.9999"
    assert normalize_exclusive_bound("10.11.0") == "10.10.9999"


def test_exclusive_bound_zero_minor_borrows_from_major():
    assert normalize_exclusive_bound("8.0.0") == "7.9999.9999"
    assert normalize_exclusive_bound("1.0.0") == "0.9999.9999"


def test_exclusive_bound_zero_major_is_not_decremented():
    assert normalize_exclusive_bound("0.0.0") == "0.9999.9999"


def test_exclusive_bound_non_numeric_patch_is_unchanged():
    assert normalize_exclusive_bound("5.7.a") == "5.7.a"
    assert normalize_exclusive_bound("5.7.x") == "5.7.x"
    assert normalize_exclusive_bound("5.7.") == "5.7."
    assert normalize_exclusive_bound("5.7") == "5.7"
    assert normalize_exclusive_bound("") == ""
    assert normalize_exclusive_bound("*") == "*"


def test_exclusive_bound_non_numeric_minor_keeps_minor():
    assert normalize_exclusive_bound("5.x.0") == "5.x.9999"


def test_exclusive_bound_uses_custom_max_part():
    assert normalize_exclusive_bound("8.0.0", max_part=99) == "7.99.99"


def test_exclusive_bound_drops_components_past_patch():
    assert normalize_exclusive_bound("5.7.3.1") == "5.7.2"


def test_exclusive_bound_handles_leading_zeros():
    assert normalize_exclusive_bound("5.7.029") == "5.7.28"


def test_canonicalize_wildcard_suffix():
    assert canonicalize("5.0.x") == NormalizedVersion("5", "0", "9999")
    assert canonicalize("5.0.x", max_part=99) == NormalizedVersion("5", "0", "99")


def test_canonicalize_rejects_placeholder():
    assert canonicalize("n/a") is None
    assert canonicalize("") is None
    assert canonicalize("unspecified") is None


def test_canonicalize_strips_phrases_and_vendor_prefix():
    assert canonicalize("4.0.20 and earlier") == NormalizedVersion("4", "0", "20")
    assert canonicalize("4.1.7andearlier") == NormalizedVersion("4", "1", "7")
    assert canonicalize("MySQL Server 5.5.30") == NormalizedVersion("5", "5", "30")
    assert canonicalize("mysql server 5.5.30") == NormalizedVersion("5", "5", "30")


def test_canonicalize_strips_other_characters():
    assert canonicalize("<= 5.6.21") == NormalizedVersion("5", "6", "21")
    assert canonicalize("v8.0.33-debian") == NormalizedVersion("8", "0", "33")


def test_canonicalize_pads_missing_components():
    version = canonicalize("8.0")
    assert version == NormalizedVersion("8", "0", "")
    assert version.dotted == "8.0."
    assert canonicalize("8") == NormalizedVersion("8", "", "")


def test_canonicalize_keeps_first_three_components():
    assert canonicalize("5.7.29.1") == NormalizedVersion("5", "7", "29")


def test_canonicalize_custom_vendor_prefix():
    version = canonicalize("MariaDB 10.5.2", vendor_prefixes=["MariaDB "])
    assert version == NormalizedVersion("10", "5", "2")
