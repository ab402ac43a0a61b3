from hotswap.domain.permissions import FALLBACK_MODE, format_mode, resolve_mode


def test_resolve_mode_parses_octal_strings():
    assert resolve_mode("0644") == 0o644
    assert resolve_mode("755") == 0o755
    assert resolve_mode(" 0700 ") == 0o700


def test_resolve_mode_falls_back_for_malformed_values():
    assert resolve_mode("bad") == 0o755
    assert resolve_mode("") == FALLBACK_MODE
    assert resolve_mode(None) == FALLBACK_MODE
    assert resolve_mode("0999") == FALLBACK_MODE


def test_resolve_mode_rejects_out_of_range_bits():
    assert resolve_mode("17777") == FALLBACK_MODE
    assert resolve_mode("7777") == 0o7777


def test_format_mode_pads_to_four_digits():
    assert format_mode(0o755) == "0755"
    assert format_mode(0o4755) == "4755"
