"""
MARKET DATA — BSE → NSE REGISTRY

Maps numeric BSE scrip codes → NSE tickers.
Yahoo quotes NSE listings far more reliably than BSE codes, so holdings
that only carry a BSE code are looked up here first.
This file is safe to evolve as listings change.
"""

from typing import Optional

BSE_TO_NSE_MAP = {
    # Financials
    "532174": "ICICIBANK",     # ICICI Bank
    "544252": "BAJAJHFL",      # Bajaj Housing Finance
    "540719": "SBILIFE",       # SBI Life Insurance
    "500180": "HDFCBANK",      # HDFC Bank
    "500112": "SBIN",          # State Bank of India

    # Technology
    "542651": "KPITTECH",      # KPIT Technologies
    "544028": "TATATECH",      # Tata Technologies
    "544107": "BLS",           # BLS E-Services
    "532790": "TANLA",         # Tanla Platforms
    "500209": "INFY",          # Infosys
    "532540": "TCS",           # Tata Consultancy Services
    "543237": "HAPPSTMNDS",    # Happiest Minds
    "543272": "EASEMYTRIP",    # Easy Trip Planners

    # Consumer
    "500800": "TATACONSUM",    # Tata Consumer Products
    "500331": "PIDILITIND",    # Pidilite Industries

    # Power / Energy
    "500400": "TATAPOWER",     # Tata Power
    "542323": "KPIGREEN",      # KPI Green Energy
    "532667": "SUZLON",        # Suzlon Energy
    "542851": "GENSOL",        # Gensol Engineering
    "500325": "RELIANCE",      # Reliance Industries

    # Pipes / Industrials / Chemicals
    "543517": "HARIOMPIPE",    # Hariom Pipe Industries
    "542652": "POLYCAB",       # Polycab India
    "543318": "CLEAN",         # Clean Science and Technology
    "506401": "DEEPAKNTR",     # Deepak Nitrite
    "541557": "FINEORG",       # Fine Organic Industries
    "533282": "GRAVITA",       # Gravita India
}


def get_nse_from_bse(bse_code: str) -> Optional[str]:
    if bse_code is None:
        return None
    return BSE_TO_NSE_MAP.get(str(bse_code).strip())


def has_bse_mapping(bse_code: str) -> bool:
    return get_nse_from_bse(bse_code) is not None
