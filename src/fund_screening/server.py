"""Fund Screening MCP Server.

FastMCP server exposing the 4433 list, the multi-criteria filter, the
per-fund check, inline scoring, manager screening, holdings similarity and
funds-by-stock lookup as tools.
Run: fund-screening-mcp
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from mcp.server.fastmcp import Context, FastMCP
from mcp.types import ToolAnnotations

from .config import Settings
from .core.clients.investool import FundApiClient
from .core.evaluation import assess, count_4433, evaluate_funds, rank_funds
from .core.formatting import format_currency, format_percentage
from .core.models import Fund, FundAssessment, ManagerSort, ScreeningCriteria
from .core.scoring import score_tier

logger = logging.getLogger(__name__)

READ_ONLY = ToolAnnotations(readOnlyHint=True, destructiveHint=False, idempotentHint=True, openWorldHint=True)


@dataclass
class AppContext:
    client: FundApiClient


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    """Configure logging and own the backend client for the server's lifetime."""
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    logger.info("Using fund backend at %s", settings.api_base_url)
    client = FundApiClient.from_settings(settings)
    try:
        yield AppContext(client=client)
    finally:
        await client.aclose()


mcp = FastMCP(
    "Fund Screening",
    instructions="Screen and rank mutual funds: the 4433 rule, a configurable 13-point check on rank, scale, manager tenure and risk, and a composite 0-100 score.",
    lifespan=lifespan,
)


def _client(ctx: Context) -> FundApiClient:
    return ctx.request_context.lifespan_context.client


def _fund_summary(assessment: FundAssessment) -> dict:
    fund = assessment.fund
    return {
        "code": fund.code,
        "name": fund.name,
        "type": fund.type,
        "scale": format_currency(fund.net_assets_scale),
        "manager": fund.manager.name if fund.manager else None,
        "is_4433": assessment.is_4433,
        "score": assessment.score,
        "score_tier": score_tier(assessment.score).value,
        "passed_count": assessment.evaluation.passed_count,
        "total_count": assessment.evaluation.total_count,
    }


def _fund_detail(assessment: FundAssessment) -> dict:
    detail = _fund_summary(assessment)
    detail["criteria"] = [r.model_dump() for r in assessment.evaluation.per_criterion_results]
    return detail


def _build_criteria(
    year_1_rank_ratio: Optional[float] = None,
    this_year_235_rank_ratio: Optional[float] = None,
    month_6_rank_ratio: Optional[float] = None,
    month_3_rank_ratio: Optional[float] = None,
    min_scale: Optional[float] = None,
    max_scale: Optional[float] = None,
    min_manager_years: Optional[float] = None,
    max_135_avg_stddev: Optional[float] = None,
    min_135_avg_sharp: Optional[float] = None,
    max_135_avg_retr: Optional[float] = None,
    min_estab_years: Optional[float] = None,
    types: Optional[list[str]] = None,
) -> ScreeningCriteria:
    return ScreeningCriteria.model_validate({
        "year_1_rank_ratio": year_1_rank_ratio,
        "this_year_235_rank_ratio": this_year_235_rank_ratio,
        "month_6_rank_ratio": month_6_rank_ratio,
        "month_3_rank_ratio": month_3_rank_ratio,
        "min_scale": min_scale,
        "max_scale": max_scale,
        "min_manager_years": min_manager_years,
        "max_135_avg_stddev": max_135_avg_stddev,
        "min_135_avg_sharp": min_135_avg_sharp,
        "max_135_avg_retr": max_135_avg_retr,
        "min_estab_years": min_estab_years,
        "types": types or [],
    })


# ─── Tool 1: 4433 List ───────────────────────────────────────────────────────


@mcp.tool(annotations=READ_ONLY)
async def fund_4433_list(
    ctx: Context, page_num: int = 1, page_size: int = 20, sort: int = 0, fund_type: str = ""
) -> dict:
    """Funds that currently satisfy the 4433 rule, ranked by composite score.

    Args:
        page_num: Backend page number, starting at 1.
        page_size: Funds per page, 1-100.
        sort: Backend ordering: 0 past week, 1 past month, 2 past year, 3 scale.
        fund_type: Restrict to one fund type (e.g. '混合型'). Empty for all.
    """
    fund_list = await _client(ctx).get_fund_index(
        page_num=page_num, page_size=page_size, sort=sort, fund_type=fund_type
    )
    ranked = rank_funds(evaluate_funds(fund_list.funds))
    return {
        "title": "4433 Funds",
        "updated_at": fund_list.updated_at,
        "funds": [_fund_summary(a) for a in ranked],
        "fund_types": fund_list.fund_types,
        "fund_4433_count": fund_list.fund_4433_count,
        "summary": f"{count_4433(fund_list.funds)} of {len(fund_list.funds)} funds on this page pass the 4433 rule "
        f"({fund_list.fund_4433_count} in total).",
    }


# ─── Tool 2: Filter ──────────────────────────────────────────────────────────


@mcp.tool(annotations=READ_ONLY)
async def fund_filter(
    ctx: Context,
    year_1_rank_ratio: Optional[float] = None,
    this_year_235_rank_ratio: Optional[float] = None,
    month_6_rank_ratio: Optional[float] = None,
    month_3_rank_ratio: Optional[float] = None,
    min_scale: Optional[float] = None,
    max_scale: Optional[float] = None,
    min_estab_years: Optional[float] = None,
    min_manager_years: Optional[float] = None,
    types: Optional[list[str]] = None,
    max_135_avg_stddev: Optional[float] = None,
    min_135_avg_sharp: Optional[float] = None,
    max_135_avg_retr: Optional[float] = None,
    require_all: bool = False,
    page_num: int = 1,
    page_size: int = 20,
    sort: int = 0,
) -> dict:
    """Filter funds by rank, scale, establishment, manager tenure and risk; ranked by score.

    Unset bounds use the defaults: ranks 25/25/33.33/33.33, scale 2-50 yi,
    manager 5 years, average volatility 25, average Sharpe 1, average drawdown 25.

    Args:
        year_1_rank_ratio: Max 1-year rank percentile.
        this_year_235_rank_ratio: Max 2/3/5-year and year-to-date rank percentile.
        month_6_rank_ratio: Max 6-month rank percentile.
        month_3_rank_ratio: Max 3-month rank percentile.
        min_scale: Min net assets, in yi (100 million).
        max_scale: Max net assets, in yi.
        min_estab_years: Min years since establishment.
        min_manager_years: Min years the current manager has run the fund.
        types: Allowed fund types. Empty for all.
        max_135_avg_stddev: Max 1/3/5-year average volatility (%).
        min_135_avg_sharp: Min 1/3/5-year average Sharpe ratio.
        max_135_avg_retr: Max 1/3/5-year average max drawdown (%).
        require_all: Only return funds that pass every check.
        page_num: Backend page number, starting at 1.
        page_size: Funds per page, 1-100.
        sort: Backend ordering: 0 past week, 1 past month, 2 past year, 3 scale.
    """
    criteria = _build_criteria(
        year_1_rank_ratio=year_1_rank_ratio,
        this_year_235_rank_ratio=this_year_235_rank_ratio,
        month_6_rank_ratio=month_6_rank_ratio,
        month_3_rank_ratio=month_3_rank_ratio,
        min_scale=min_scale,
        max_scale=max_scale,
        min_manager_years=min_manager_years,
        max_135_avg_stddev=max_135_avg_stddev,
        min_135_avg_sharp=min_135_avg_sharp,
        max_135_avg_retr=max_135_avg_retr,
        min_estab_years=min_estab_years,
        types=types,
    )
    fund_list = await _client(ctx).filter_funds(criteria, page_num=page_num, page_size=page_size, sort=sort)
    ranked = rank_funds(evaluate_funds(fund_list.funds, criteria, require_all=require_all))
    return {
        "title": "Fund Filter",
        "criteria": criteria.to_query_params(),
        "funds": [_fund_summary(a) for a in ranked],
        "count": len(ranked),
        "summary": f"{len(ranked)} of {len(fund_list.funds)} fetched funds kept.",
    }


# ─── Tool 3: Check ───────────────────────────────────────────────────────────


@mcp.tool(annotations=READ_ONLY)
async def fund_check(
    ctx: Context,
    fundcode: str,
    year_1_rank_ratio: Optional[float] = None,
    this_year_235_rank_ratio: Optional[float] = None,
    month_6_rank_ratio: Optional[float] = None,
    month_3_rank_ratio: Optional[float] = None,
    min_scale: Optional[float] = None,
    max_scale: Optional[float] = None,
    min_manager_years: Optional[float] = None,
    max_135_avg_stddev: Optional[float] = None,
    min_135_avg_sharp: Optional[float] = None,
    max_135_avg_retr: Optional[float] = None,
) -> dict:
    """Run the 13-point check on specific funds and show which criteria pass.

    Args:
        fundcode: One or more fund codes separated by spaces (e.g. '000001 110011').
        year_1_rank_ratio: Max 1-year rank percentile. Default 25.
        this_year_235_rank_ratio: Max 2/3/5-year and year-to-date rank percentile. Default 25.
        month_6_rank_ratio: Max 6-month rank percentile. Default 33.33.
        month_3_rank_ratio: Max 3-month rank percentile. Default 33.33.
        min_scale: Min net assets, in yi. Default 2.
        max_scale: Max net assets, in yi. Default 50.
        min_manager_years: Min manager tenure in years. Default 5.
        max_135_avg_stddev: Max average volatility (%). Default 25.
        min_135_avg_sharp: Min average Sharpe ratio. Default 1.
        max_135_avg_retr: Max average drawdown (%). Default 25.
    """
    criteria = _build_criteria(
        year_1_rank_ratio=year_1_rank_ratio,
        this_year_235_rank_ratio=this_year_235_rank_ratio,
        month_6_rank_ratio=month_6_rank_ratio,
        month_3_rank_ratio=month_3_rank_ratio,
        min_scale=min_scale,
        max_scale=max_scale,
        min_manager_years=min_manager_years,
        max_135_avg_stddev=max_135_avg_stddev,
        min_135_avg_sharp=min_135_avg_sharp,
        max_135_avg_retr=max_135_avg_retr,
    )
    funds = await _client(ctx).check_funds(fundcode.split())
    results = [_fund_detail(assess(f, criteria)) for f in funds]

    parts = [f"{r['name']} ({r['code']}): {r['passed_count']}/{r['total_count']} passed, score {r['score']}" for r in results]
    return {
        "title": "Fund Check",
        "funds": results,
        "summary": " | ".join(parts) if parts else f"No funds found for '{fundcode}'",
    }


# ─── Tool 4: Score ───────────────────────────────────────────────────────────


@mcp.tool(annotations=READ_ONLY)
async def fund_score(fund: dict) -> dict:
    """Score a fund snapshot supplied inline, without calling the backend.

    Args:
        fund: Fund JSON in the backend's shape: code, name, type, net_assets_scale,
              manager, performance, stddev, sharp, max_retracement.
    """
    assessment = assess(Fund.model_validate(fund))
    detail = _fund_detail(assessment)
    detail["summary"] = (
        f"{assessment.fund.code or 'Fund'} scores {assessment.score}/100"
        + (", passes the 4433 rule." if assessment.is_4433 else ", does not pass the 4433 rule.")
    )
    return detail


# ─── Tool 5: Managers ────────────────────────────────────────────────────────


@mcp.tool(annotations=READ_ONLY)
async def fund_managers(
    ctx: Context,
    name: str = "",
    min_working_years: Optional[int] = 8,
    min_yieldse: Optional[float] = 15,
    max_current_fund_count: Optional[int] = 10,
    min_scale: Optional[float] = 60,
    sort: ManagerSort = ManagerSort.ANNUAL_RETURN,
    fund_type: str = "",
    page_num: int = 1,
    page_size: int = 20,
) -> dict:
    """Screen fund managers by experience, annualised return, workload and assets managed.

    Args:
        name: Manager name to search for. Empty for all.
        min_working_years: Min years in the industry. Default 8.
        min_yieldse: Min annualised return across the career (%). Default 15.
        max_current_fund_count: Max funds managed right now. Default 10.
        min_scale: Min assets under management, in yi. Default 60.
        sort: 'yieldse' (return), 'scale', 'score', 'an' (awards), 'fc' (fund count),
              'cbr' (current best return) or 'wbr' (tenure best return).
        fund_type: Restrict to managers of one fund type. Empty for all.
        page_num: Backend page number, starting at 1.
        page_size: Managers per page, 1-100.
    """
    manager_list = await _client(ctx).get_fund_managers(
        name=name,
        min_working_years=min_working_years,
        min_yieldse=min_yieldse,
        max_current_fund_count=max_current_fund_count,
        min_scale=min_scale,
        sort=sort,
        page_num=page_num,
        page_size=page_size,
        fund_type=fund_type,
    )
    managers = [m.model_dump() for m in manager_list.managers]
    with_4433 = sum(1 for m in manager_list.managers if m.best_fund_is_4433)
    return {
        "title": "Fund Managers",
        "managers": managers,
        "total": manager_list.total,
        "summary": f"{len(managers)} managers on this page ({manager_list.total} in total), "
        f"{with_4433} whose best fund passes the 4433 rule.",
    }


# ─── Tool 6: Holdings Similarity ─────────────────────────────────────────────


@mcp.tool(annotations=READ_ONLY)
async def fund_similarity(ctx: Context, codes: str) -> dict:
    """Compare how much the holdings of several funds overlap.

    Args:
        codes: Fund codes separated by spaces (e.g. '000001 110011').
    """
    result = await _client(ctx).get_fund_similarity(codes.split())
    return {
        "title": "Holdings Similarity",
        **result.model_dump(),
        "summary": f"{result.fund_count} funds compared, average similarity {format_percentage(result.avg_similarity)}.",
    }


# ─── Tool 7: Query by Stock ──────────────────────────────────────────────────


@mcp.tool(annotations=READ_ONLY)
async def fund_query_by_stock(ctx: Context, keywords: str) -> dict:
    """Find funds that hold the stocks matching the given keywords.

    Args:
        keywords: Stock names or codes separated by spaces (e.g. '贵州茅台 600036').
    """
    result = await _client(ctx).query_by_stock(keywords)
    return {
        "title": "Funds by Stock",
        **result.model_dump(),
        "summary": result.message or f"{result.fund_count} funds hold {result.stock_count} matching stocks.",
    }


def main():
    """Entry point for the CLI command."""
    mcp.run()


if __name__ == "__main__":
    main()
