"""Pydantic data models — the shared business objects.

Fund snapshots arrive from the research backend, screening criteria arrive
from callers, and the evaluator returns plain result records built on top of
both. Every model here is safe to pass between the fetch client, the
evaluator, and the tool server.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Default bound of each numeric screening criterion, keyed by field name.
DEFAULT_BOUNDS: dict[str, float] = {
    "year_1_rank_ratio_max": 25.0,
    "years_235_rank_ratio_max": 25.0,
    "month_6_rank_ratio_max": 33.33,
    "month_3_rank_ratio_max": 33.33,
    "min_scale": 2.0,
    "max_scale": 50.0,
    "min_manager_years": 5.0,
    "max_avg_135_stddev": 25.0,
    "min_avg_135_sharpe": 1.0,
    "max_avg_135_retracement": 25.0,
}

_RANK_BOUNDS = (
    "year_1_rank_ratio_max",
    "years_235_rank_ratio_max",
    "month_6_rank_ratio_max",
    "month_3_rank_ratio_max",
)


class FundManager(BaseModel):
    """The manager currently running a fund."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = ""
    name: str = ""
    manage_days: Optional[float] = Field(None, ge=0, description="Days managing this fund, possibly fractional")
    manage_return_pct: Optional[float] = Field(
        None, alias="manage_repay", description="Return over the manager's tenure, in percent"
    )


class FundPerformance(BaseModel):
    """Peer-relative rank ratios. Each is a percentile where lower is better."""

    model_config = ConfigDict(frozen=True)

    year_1_rank_ratio: Optional[float] = Field(None, ge=0)
    year_2_rank_ratio: Optional[float] = Field(None, ge=0)
    year_3_rank_ratio: Optional[float] = Field(None, ge=0)
    year_5_rank_ratio: Optional[float] = Field(None, ge=0)
    this_year_rank_ratio: Optional[float] = Field(None, ge=0)
    month_6_rank_ratio: Optional[float] = Field(None, ge=0)
    month_3_rank_ratio: Optional[float] = Field(None, ge=0)


class RiskMetric(BaseModel):
    """One risk measure over the 1, 3 and 5 year windows plus their average."""

    model_config = ConfigDict(frozen=True)

    avg_135: Optional[float] = None
    year_1: Optional[float] = None
    year_3: Optional[float] = None
    year_5: Optional[float] = None


class FundRisk(BaseModel):
    """Volatility (lower better), Sharpe ratio (higher better) and drawdown (lower better)."""

    model_config = ConfigDict(frozen=True)

    stddev: Optional[RiskMetric] = None
    sharpe: Optional[RiskMetric] = None
    max_retracement: Optional[RiskMetric] = None


class FundStock(BaseModel):
    """A holding reported in the fund's latest disclosure."""

    model_config = ConfigDict(frozen=True)

    code: str = ""
    name: str = ""
    hold_ratio: Optional[float] = None
    industry: str = ""
    adjust_ratio: Optional[float] = None


class Fund(BaseModel):
    """A read-only fund snapshot as served by the research backend."""

    model_config = ConfigDict(frozen=True)

    code: str = ""
    name: str = ""
    type: str = ""
    net_assets_scale: Optional[float] = Field(None, ge=0, description="Net assets in base currency units")
    established_date: Optional[date] = None
    manager: Optional[FundManager] = None
    performance: Optional[FundPerformance] = None
    risk: FundRisk = Field(default_factory=FundRisk)
    stocks: list[FundStock] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _lift_risk_metrics(cls, data: Any) -> Any:
        # The backend serves the three risk metrics flat on the fund, with the
        # Sharpe ratio spelled "sharp".
        if not isinstance(data, dict) or "risk" in data:
            return data
        flat = {
            "stddev": data.get("stddev"),
            "sharpe": data.get("sharp", data.get("sharpe")),
            "max_retracement": data.get("max_retracement"),
        }
        lifted = {k: v for k, v in data.items() if k not in ("stddev", "sharp", "sharpe", "max_retracement")}
        lifted["risk"] = flat
        return lifted

    @field_validator("established_date", mode="before")
    @classmethod
    def _blank_date(cls, value: Any) -> Any:
        if value in ("", "--"):
            return None
        return value

    @property
    def scale_yi(self) -> Optional[float]:
        """Net assets in units of 100,000,000."""
        if self.net_assets_scale is None:
            return None
        return self.net_assets_scale / 1e8


class ScreeningCriteria(BaseModel):
    """Caller-supplied screening bounds.

    Every field is optional. Numeric bounds left unset resolve to the
    documented defaults in ``DEFAULT_BOUNDS`` via :meth:`bound`; an unset
    bound never disables its criterion. ``min_established_years`` and
    ``allowed_types`` only take part in list-level pre-filtering.

    Fields accept either their Python name or the backend's query parameter
    name (``this_year_235_rank_ratio``, ``min_135_avg_sharp`` ...).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    year_1_rank_ratio_max: Optional[float] = Field(None, ge=0, le=100, alias="year_1_rank_ratio")
    years_235_rank_ratio_max: Optional[float] = Field(None, ge=0, le=100, alias="this_year_235_rank_ratio")
    month_6_rank_ratio_max: Optional[float] = Field(None, ge=0, le=100, alias="month_6_rank_ratio")
    month_3_rank_ratio_max: Optional[float] = Field(None, ge=0, le=100, alias="month_3_rank_ratio")
    min_scale: Optional[float] = Field(None, ge=0, description="Minimum net assets, in yi")
    max_scale: Optional[float] = Field(None, ge=0, description="Maximum net assets, in yi")
    min_established_years: Optional[float] = Field(None, ge=0, alias="min_estab_years")
    min_manager_years: Optional[float] = Field(None, ge=0)
    allowed_types: frozenset[str] = Field(default_factory=frozenset, alias="types")
    max_avg_135_stddev: Optional[float] = Field(None, ge=0, alias="max_135_avg_stddev")
    min_avg_135_sharpe: Optional[float] = Field(None, ge=0, alias="min_135_avg_sharp")
    max_avg_135_retracement: Optional[float] = Field(None, ge=0, alias="max_135_avg_retr")

    @field_validator("allowed_types", mode="before")
    @classmethod
    def _check_types_shape(cls, value: Any) -> Any:
        if value is None:
            return frozenset()
        if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
            raise ValueError("allowed_types must be a collection of fund type names, not a single value")
        items = list(value)
        if not all(isinstance(item, str) for item in items):
            raise ValueError("allowed_types entries must be strings")
        return frozenset(item for item in items if item)

    @model_validator(mode="after")
    def _check_scale_range(self) -> ScreeningCriteria:
        if self.min_scale is not None and self.max_scale is not None and self.min_scale > self.max_scale:
            raise ValueError(f"min_scale ({self.min_scale}) is greater than max_scale ({self.max_scale})")
        return self

    def bound(self, name: str) -> float:
        """Resolve a numeric bound: the caller's value, else its documented default."""
        if name not in DEFAULT_BOUNDS:
            raise KeyError(f"Unknown screening bound: {name}")
        value = getattr(self, name)
        return DEFAULT_BOUNDS[name] if value is None else value

    def to_query_params(self) -> dict[str, Any]:
        """Render the set fields under the backend's parameter names."""
        params = self.model_dump(by_alias=True, exclude_none=True)
        types = params.pop("types", None)
        if types:
            params["types"] = sorted(types)
        return params


class CriterionResult(BaseModel):
    """Outcome of one screening row."""

    key: str
    label: str
    comparator: Literal["<=", ">="]
    actual: float = Field(description="Actual value after missing-field substitution")
    actual_value_display: str
    required: float = Field(description="Resolved bound the actual value is compared with")
    passed: bool


class EvaluationResult(BaseModel):
    """All screening rows for one fund, in fixed order, plus its composite score."""

    per_criterion_results: list[CriterionResult]
    passed_count: int = Field(ge=0)
    total_count: int = Field(ge=0)
    score: int = Field(ge=0, le=100)

    @property
    def all_passed(self) -> bool:
        return self.passed_count == self.total_count


class FundAssessment(BaseModel):
    """A fund together with every value derived from it."""

    fund: Fund
    is_4433: bool
    evaluation: EvaluationResult

    @property
    def score(self) -> int:
        return self.evaluation.score


class FundList(BaseModel):
    """A page of funds returned by the backend's list endpoints."""

    funds: list[Fund] = Field(default_factory=list)
    updated_at: str = ""
    all_fund_count: int = 0
    fund_4433_count: int = 0
    fund_types: list[str] = Field(default_factory=list)


class ScoreTier(str, Enum):
    """Display band of a composite score."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ManagerSort(str, Enum):
    """Orderings the backend supports for manager screening."""

    ANNUAL_RETURN = "yieldse"
    SCALE = "scale"
    SCORE = "score"
    AWARDS = "an"
    FUND_COUNT = "fc"
    CURRENT_BEST_RETURN = "cbr"
    TENURE_BEST_RETURN = "wbr"


class FundManagerInfo(BaseModel):
    """A fund manager as listed by the backend's manager screen."""

    id: str = ""
    name: str = ""
    working_years: Optional[float] = None
    yieldse: Optional[float] = Field(None, description="Annualised return across the career, in percent")
    current_fund_count: Optional[int] = None
    scale: Optional[float] = Field(None, description="Assets under management, in yi")
    best_fund_is_4433: bool = False
    current_best_fund_code: str = ""


class ManagerList(BaseModel):
    managers: list[FundManagerInfo] = Field(default_factory=list)
    total: int = 0


class HoldingsSimilarity(BaseModel):
    """Holdings overlap across a set of funds. Extra backend fields are kept."""

    model_config = ConfigDict(extra="allow")

    fund_count: int = 0
    avg_similarity: float = 0.0


class StockFundQuery(BaseModel):
    """Funds holding the stocks that match a keyword search. Extra backend fields are kept."""

    model_config = ConfigDict(extra="allow")

    fund_count: int = 0
    stock_count: int = 0
    message: str = ""
