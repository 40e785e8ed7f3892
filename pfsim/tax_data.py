"""Tax bracket, limit and threshold reference data for pfsim."""

from __future__ import annotations

from typing import Final

BASE_TAX_YEAR: Final[int] = 2026
DEFAULT_INFLATION_RATE: Final[float] = 0.031
DEFAULT_FILING_STATUS: Final[str] = "single"
DEFAULT_START_AGE: Final[int] = 57
DEFAULT_RMD_START_AGE: Final[int] = 73

FILING_STATUSES: Final[set[str]] = {
    "single",
    "married_filing_jointly",
    "married_filing_separately",
    "head_of_household",
    "qualifying_surviving_spouse",
}

JOINT_FILING_STATUSES: Final[set[str]] = {"married_filing_jointly", "qualifying_surviving_spouse"}

# Brackets are (upper_bound, marginal_rate). Upper bound None means infinity.
FEDERAL_BRACKETS: Final[dict[int, dict[str, list[tuple[float | None, float]]]]] = {
    2026: {
        "single": [
            (12_400.0, 0.10),
            (50_400.0, 0.12),
            (105_700.0, 0.22),
            (201_775.0, 0.24),
            (256_225.0, 0.32),
            (640_600.0, 0.35),
            (None, 0.37),
        ],
        "married_filing_jointly": [
            (24_800.0, 0.10),
            (100_800.0, 0.12),
            (211_400.0, 0.22),
            (403_550.0, 0.24),
            (512_450.0, 0.32),
            (768_700.0, 0.35),
            (None, 0.37),
        ],
        "married_filing_separately": [
            (12_400.0, 0.10),
            (50_400.0, 0.12),
            (105_700.0, 0.22),
            (201_775.0, 0.24),
            (256_225.0, 0.32),
            (384_350.0, 0.35),
            (None, 0.37),
        ],
        "head_of_household": [
            (17_700.0, 0.10),
            (67_450.0, 0.12),
            (105_700.0, 0.22),
            (201_750.0, 0.24),
            (256_200.0, 0.32),
            (640_600.0, 0.35),
            (None, 0.37),
        ],
        "qualifying_surviving_spouse": [
            (24_800.0, 0.10),
            (100_800.0, 0.12),
            (211_400.0, 0.22),
            (403_550.0, 0.24),
            (512_450.0, 0.32),
            (768_700.0, 0.35),
            (None, 0.37),
        ],
    }
}

# Long-term capital gains brackets are (upper_bound, marginal_rate).
CAPITAL_GAINS_BRACKETS: Final[dict[int, dict[str, list[tuple[float | None, float]]]]] = {
    2026: {
        "single": [(50_800.0, 0.00), (557_000.0, 0.15), (None, 0.20)],
        "married_filing_jointly": [(101_600.0, 0.00), (626_350.0, 0.15), (None, 0.20)],
        "married_filing_separately": [(50_800.0, 0.00), (313_175.0, 0.15), (None, 0.20)],
        "head_of_household": [(68_050.0, 0.00), (595_350.0, 0.15), (None, 0.20)],
        "qualifying_surviving_spouse": [(101_600.0, 0.00), (626_350.0, 0.15), (None, 0.20)],
    }
}

STANDARD_DEDUCTIONS: Final[dict[int, dict[str, float]]] = {
    2026: {
        "single": 16_100.0,
        "married_filing_jointly": 32_200.0,
        "married_filing_separately": 16_100.0,
        "head_of_household": 24_150.0,
        "qualifying_surviving_spouse": 32_200.0,
    }
}

# Employed workers pay the half rates; self-employed pay both halves.
FICA_RATES: Final[dict[int, dict[str, float]]] = {
    2026: {
        "social_security_rate": 0.062,
        "social_security_wage_base": 184_500.0,
        "medicare_rate": 0.0145,
    }
}

# (under catch-up age, at or over catch-up age), per person.
CONTRIBUTION_LIMITS: Final[dict[int, dict[str, tuple[float, float]]]] = {
    2026: {
        "ira": (7_500.0, 8_600.0),
        "401k": (24_500.0, 32_500.0),
    }
}
CATCH_UP_AGE: Final[int] = 50

PROPERTY_TAX_DEDUCTION_MAX: Final[float] = 40_000.0

HOME_SALE_EXCLUSIONS: Final[dict[str, float]] = {
    "single": 250_000.0,
    "married_filing_jointly": 500_000.0,
    "married_filing_separately": 250_000.0,
    "head_of_household": 250_000.0,
    "qualifying_surviving_spouse": 500_000.0,
}
HOME_SALE_MIN_HOLDING_MONTHS: Final[int] = 24
LONG_TERM_HOLDING_MONTHS: Final[int] = 12

SOCIAL_SECURITY_TAXABLE_SHARE: Final[float] = 0.85
