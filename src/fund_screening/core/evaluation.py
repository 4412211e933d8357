"""Batch evaluation over fund lists.

Applies the list-level pre-filter (fund type, years since establishment),
assesses every remaining fund independently, and ranks the results. Funds
are never mutated; each call recomputes everything from the snapshots.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date
from typing import Optional

from .models import Fund, FundAssessment, ScreeningCriteria
from .scoring import DAYS_PER_YEAR, is_4433, screen

logger = logging.getLogger(__name__)


def established_years(fund: Fund, as_of: Optional[date] = None) -> float:
    """Years since the fund was established, 0 when the date is unknown."""
    if fund.established_date is None:
        return 0.0
    as_of = as_of or date.today()
    return max(0.0, (as_of - fund.established_date).days / DAYS_PER_YEAR)


def passes_prefilter(fund: Fund, criteria: ScreeningCriteria, as_of: Optional[date] = None) -> bool:
    """Whether a fund belongs in the result set at all.

    An empty ``allowed_types`` admits every type. An unset
    ``min_established_years`` admits every fund, while a set one excludes
    funds whose establishment date is unknown.
    """
    if criteria.allowed_types and fund.type not in criteria.allowed_types:
        return False
    if criteria.min_established_years is not None:
        return established_years(fund, as_of) >= criteria.min_established_years
    return True


def assess(fund: Fund, criteria: Optional[ScreeningCriteria] = None) -> FundAssessment:
    """Compute the 4433 flag, the screen result and the score for one fund."""
    return FundAssessment(
        fund=fund,
        is_4433=is_4433(fund),
        evaluation=screen(fund, criteria),
    )


def evaluate_funds(
    funds: Iterable[Fund],
    criteria: Optional[ScreeningCriteria] = None,
    *,
    as_of: Optional[date] = None,
    require_all: bool = False,
) -> list[FundAssessment]:
    """Pre-filter and assess a list of funds, keeping input order.

    Args:
        funds: Fund snapshots from the fetch layer.
        criteria: Screening bounds; documented defaults when omitted.
        as_of: Reference date for the establishment-years filter. Defaults to today.
        require_all: Keep only funds that pass every screening row.
    """
    criteria = criteria or ScreeningCriteria()
    as_of = as_of or date.today()

    results = []
    excluded = 0
    for fund in funds:
        if not passes_prefilter(fund, criteria, as_of):
            logger.debug("Fund %s (%s) excluded by pre-filter", fund.code, fund.type)
            excluded += 1
            continue
        assessment = assess(fund, criteria)
        if require_all and not assessment.evaluation.all_passed:
            excluded += 1
            continue
        results.append(assessment)

    logger.info("Evaluated %d funds, %d excluded", len(results), excluded)
    return results


def rank_funds(assessments: Iterable[FundAssessment]) -> list[FundAssessment]:
    """Order assessments by score, highest first. Ties keep their input order."""
    return sorted(assessments, key=lambda a: a.score, reverse=True)


def count_4433(funds: Iterable[Fund]) -> int:
    return sum(1 for f in funds if is_4433(f))
