import json
from pathlib import Path

import pytest

SAMPLE_PORTFOLIO = Path(__file__).resolve().parent.parent / "sample_portfolio.json"


@pytest.fixture
def sample_portfolio_dict() -> dict:
    return json.loads(SAMPLE_PORTFOLIO.read_text(encoding="utf-8"))


@pytest.fixture
def sample_portfolio_path() -> Path:
    return SAMPLE_PORTFOLIO
