import copy

import pytest

from fund_screening.core.models import Fund

# A fund sitting exactly on every default screening bound (scale on the lower one).
BOUNDARY_FUND = {
    "code": "000001",
    "name": "Boundary Growth Mixed",
    "type": "混合型",
    "net_assets_scale": 200_000_000,
    "established_date": "2012-06-01",
    "manager": {"id": "30001", "name": "Zhang Wei", "manage_days": 1825, "manage_repay": 182.5},
    "performance": {
        "year_1_rank_ratio": 25,
        "year_2_rank_ratio": 25,
        "year_3_rank_ratio": 25,
        "year_5_rank_ratio": 25,
        "this_year_rank_ratio": 25,
        "month_6_rank_ratio": 33.33,
        "month_3_rank_ratio": 33.33,
    },
    "stddev": {"avg_135": 25, "year_1": 24, "year_3": 25, "year_5": 26},
    "sharp": {"avg_135": 1, "year_1": 0.9, "year_3": 1.0, "year_5": 1.1},
    "max_retracement": {"avg_135": 25, "year_1": 20, "year_3": 25, "year_5": 30},
}


def make_fund_data(**overrides) -> dict:
    """Copy of BOUNDARY_FUND with top-level keys replaced or nested dicts merged."""
    data = copy.deepcopy(BOUNDARY_FUND)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(data.get(key), dict):
            data[key].update(value)
        else:
            data[key] = value
    return data


def make_fund(**overrides) -> Fund:
    return Fund.model_validate(make_fund_data(**overrides))


@pytest.fixture
def boundary_fund() -> Fund:
    return make_fund()


@pytest.fixture
def empty_fund() -> Fund:
    return Fund(code="999999")
