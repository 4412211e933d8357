"""Fund screening and scoring engine.

Classifies a fund against the 4433 rule, runs the 13-row parameterised
screen, and computes the composite 0-100 desirability score. Every function
here is pure: no I/O, no shared state, and no exceptions for partial input.
Missing numbers are read as 0.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, NamedTuple, Optional

from .formatting import format_currency, format_number, format_percentage, format_years
from .models import (
    CriterionResult,
    EvaluationResult,
    Fund,
    FundPerformance,
    RiskMetric,
    ScoreTier,
    ScreeningCriteria,
)

logger = logging.getLogger(__name__)

YEAR_RANK_LIMIT = 25.0
MONTH_RANK_LIMIT = 33.33
YI = 1e8
DAYS_PER_YEAR = 365
HIGH_SCORE = 80
MEDIUM_SCORE = 60


def _or_zero(value: Optional[float]) -> float:
    return 0.0 if value is None else float(value)


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def avg_135(metric: Optional[RiskMetric]) -> float:
    """The 1/3/5-year average of a risk metric, 0 when the metric is unknown."""
    if metric is None:
        return 0.0
    return _or_zero(metric.avg_135)


def _rank(fund: Fund, field: str) -> Optional[float]:
    if fund.performance is None:
        return None
    return getattr(fund.performance, field)


# ─── 4433 Rule ───────────────────────────────────────────────────────────────


def is_4433(fund: Fund) -> bool:
    """Check the fixed 4433 rule.

    Top quartile (<= 25) over 1, 2, 3 and 5 years and year-to-date; top
    tertile (<= 33.33) over the trailing 6 and 3 months. A fund without
    performance data, or missing any one ratio, does not qualify.
    """
    p: Optional[FundPerformance] = fund.performance
    if p is None:
        return False

    checks = (
        (p.year_1_rank_ratio, YEAR_RANK_LIMIT),
        (p.year_2_rank_ratio, YEAR_RANK_LIMIT),
        (p.year_3_rank_ratio, YEAR_RANK_LIMIT),
        (p.year_5_rank_ratio, YEAR_RANK_LIMIT),
        (p.this_year_rank_ratio, YEAR_RANK_LIMIT),
        (p.month_6_rank_ratio, MONTH_RANK_LIMIT),
        (p.month_3_rank_ratio, MONTH_RANK_LIMIT),
    )
    return all(value is not None and value <= limit for value, limit in checks)


# ─── Composite Score ─────────────────────────────────────────────────────────


def performance_subscore(fund: Fund) -> float:
    """Rank-based sub-score, at most 40.

    A missing ratio is read as 0 and so earns its full weight.
    """
    y1 = _or_zero(_rank(fund, "year_1_rank_ratio"))
    y3 = _or_zero(_rank(fund, "year_3_rank_ratio"))
    m6 = _or_zero(_rank(fund, "month_6_rank_ratio"))
    return _clamp(0.2 * (100 - y1) + 0.1 * (100 - y3) + 0.1 * (100 - m6))


def risk_subscore(fund: Fund) -> float:
    stddev = avg_135(fund.risk.stddev)
    sharpe = avg_135(fund.risk.sharpe)
    return _clamp(0.15 * max(0.0, 100 - 2 * stddev) + 0.15 * max(0.0, 10 * sharpe))


def manager_subscore(fund: Fund) -> float:
    days = _or_zero(fund.manager.manage_days if fund.manager else None)
    return _clamp(min(100.0, 20 * days / DAYS_PER_YEAR))


def scale_subscore(fund: Fund) -> float:
    scale = _or_zero(fund.net_assets_scale)
    return _clamp(min(100.0, 10 * scale / YI))


def score(fund: Fund) -> int:
    """Composite desirability score in [0, 100].

    Sum of the performance, risk, manager and scale sub-scores, each clamped
    to [0, 100], then clamped again and rounded half up.
    """
    total = performance_subscore(fund) + risk_subscore(fund) + manager_subscore(fund) + scale_subscore(fund)
    return _round_half_up(_clamp(total))


def score_tier(value: int) -> ScoreTier:
    """Band a composite score for display: 80 and up is high, 60 and up medium."""
    if value >= HIGH_SCORE:
        return ScoreTier.HIGH
    if value >= MEDIUM_SCORE:
        return ScoreTier.MEDIUM
    return ScoreTier.LOW


# ─── Screen ──────────────────────────────────────────────────────────────────


class _Row(NamedTuple):
    key: str
    label: str
    comparator: str
    bound: str
    actual: Callable[[Fund], Optional[float]]
    display: Callable[[Fund], str]


def _rank_row(key: str, label: str, field: str, bound: str) -> _Row:
    return _Row(
        key=key,
        label=label,
        comparator="<=",
        bound=bound,
        actual=lambda f: _rank(f, field),
        display=lambda f: format_percentage(_rank(f, field)),
    )


def _manager_days(fund: Fund) -> Optional[float]:
    return fund.manager.manage_days if fund.manager else None


def _tenure_years(fund: Fund) -> Optional[float]:
    days = _manager_days(fund)
    return None if days is None else days / DAYS_PER_YEAR


# Fixed row order; results are indexed positionally by callers.
SCREEN_ROWS: tuple[_Row, ...] = (
    _rank_row("year_1_rank", "1y rank", "year_1_rank_ratio", "year_1_rank_ratio_max"),
    _rank_row("year_2_rank", "2y rank", "year_2_rank_ratio", "years_235_rank_ratio_max"),
    _rank_row("year_3_rank", "3y rank", "year_3_rank_ratio", "years_235_rank_ratio_max"),
    _rank_row("year_5_rank", "5y rank", "year_5_rank_ratio", "years_235_rank_ratio_max"),
    _rank_row("this_year_rank", "YTD rank", "this_year_rank_ratio", "years_235_rank_ratio_max"),
    _rank_row("month_6_rank", "6mo rank", "month_6_rank_ratio", "month_6_rank_ratio_max"),
    _rank_row("month_3_rank", "3mo rank", "month_3_rank_ratio", "month_3_rank_ratio_max"),
    _Row("min_scale", "Min scale", ">=", "min_scale", lambda f: f.scale_yi, lambda f: format_currency(f.net_assets_scale)),
    _Row("max_scale", "Max scale", "<=", "max_scale", lambda f: f.scale_yi, lambda f: format_currency(f.net_assets_scale)),
    _Row("manager_tenure", "Manager tenure", ">=", "min_manager_years", _tenure_years, lambda f: format_years(_manager_days(f))),
    _Row(
        "avg_stddev", "Avg volatility", "<=", "max_avg_135_stddev",
        lambda f: avg_135(f.risk.stddev), lambda f: format_percentage(avg_135(f.risk.stddev)),
    ),
    _Row(
        "avg_sharpe", "Avg Sharpe", ">=", "min_avg_135_sharpe",
        lambda f: avg_135(f.risk.sharpe), lambda f: format_number(avg_135(f.risk.sharpe)),
    ),
    _Row(
        "avg_retracement", "Avg drawdown", "<=", "max_avg_135_retracement",
        lambda f: avg_135(f.risk.max_retracement), lambda f: format_percentage(avg_135(f.risk.max_retracement)),
    ),
)


def _compare(actual: float, comparator: str, required: float) -> bool:
    if comparator == "<=":
        return actual <= required
    return actual >= required


def screen(fund: Fund, criteria: Optional[ScreeningCriteria] = None) -> EvaluationResult:
    """Run the 13-row screen against ``criteria`` (defaults when omitted).

    Comparisons are inclusive. A missing actual value is read as 0 before
    comparison and shown as ``--``.
    """
    criteria = criteria or ScreeningCriteria()
    results = []
    for row in SCREEN_ROWS:
        actual = _or_zero(row.actual(fund))
        required = criteria.bound(row.bound)
        results.append(CriterionResult(
            key=row.key,
            label=row.label,
            comparator=row.comparator,
            actual=actual,
            actual_value_display=row.display(fund),
            required=required,
            passed=_compare(actual, row.comparator, required),
        ))

    passed = sum(1 for r in results if r.passed)
    logger.debug("Screened fund %s: %d/%d criteria passed", fund.code, passed, len(results))
    return EvaluationResult(
        per_criterion_results=results,
        passed_count=passed,
        total_count=len(results),
        score=score(fund),
    )
