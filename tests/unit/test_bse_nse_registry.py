from portfolio_tracker.services.bse_nse_registry import (
    BSE_TO_NSE_MAP,
    get_nse_from_bse,
    has_bse_mapping,
)


def test_known_bse_codes_map_to_nse():
    assert get_nse_from_bse("532174") == "ICICIBANK"
    assert get_nse_from_bse(" 500209 ") == "INFY"
    assert has_bse_mapping("532540")


def test_unknown_codes():
    assert get_nse_from_bse("999999") is None
    assert get_nse_from_bse(None) is None
    assert not has_bse_mapping("")


def test_registry_entries_are_well_formed():
    for bse_code, nse_code in BSE_TO_NSE_MAP.items():
        assert bse_code.isdigit()
        assert nse_code == nse_code.upper()
