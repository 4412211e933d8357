"""Fund research backend API client.

Endpoints live under /api/fund and answer with a JSON envelope:
{"code": 200, "message": "success", "data": {...}, "error": "", "timestamp": ...}

The client is constructed explicitly and handed to whoever needs it; the
caller owns its lifetime.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from ...config import Settings
from ..models import (
    Fund,
    FundList,
    FundManagerInfo,
    HoldingsSimilarity,
    ManagerList,
    ManagerSort,
    ScreeningCriteria,
    StockFundQuery,
)

logger = logging.getLogger(__name__)

SUCCESS_CODES = (0, 200)


class FundApiError(RuntimeError):
    """The backend answered with an error envelope."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


def unwrap_envelope(body: Any) -> Any:
    """Return the payload of a response envelope, raising on error envelopes.

    Bodies without a ``data`` member are returned as they are.
    """
    if not isinstance(body, dict):
        return body

    error = body.get("error")
    code = body.get("code")
    if error or (isinstance(code, int) and code not in SUCCESS_CODES):
        message = body.get("message") or "request failed"
        raise FundApiError(f"{message}: {error}" if error else message, code=code)

    if body.get("data"):
        return body["data"]
    return body


def parse_funds(records: Optional[list]) -> list[Fund]:
    """Validate raw fund records, skipping any that do not parse."""
    funds = []
    for record in records or []:
        try:
            funds.append(Fund.model_validate(record))
        except ValidationError as exc:
            code = record.get("code", "?") if isinstance(record, dict) else "?"
            logger.warning("Skipping malformed fund record %s: %s", code, exc)
    return funds


def _split_codes(codes: list[str]) -> list[str]:
    return [c.strip() for c in codes if c and c.strip()]


def _parse_fund_list(data: dict) -> FundList:
    return FundList(
        funds=parse_funds(data.get("fund_list")),
        updated_at=data.get("updated_at") or "",
        all_fund_count=data.get("all_fund_count") or 0,
        fund_4433_count=data.get("fund_4433_count") or 0,
        fund_types=data.get("fund_types") or [],
    )


class FundApiClient:
    """Async client for the fund, manager, similarity and holdings endpoints."""

    def __init__(self, http_client: httpx.AsyncClient):
        self._http = http_client

    @classmethod
    def from_settings(cls, settings: Settings) -> FundApiClient:
        http_client = httpx.AsyncClient(
            base_url=settings.api_base_url,
            timeout=httpx.Timeout(settings.timeout_seconds, connect=10.0),
            headers={"Content-Type": "application/json"},
        )
        return cls(http_client)

    async def __aenter__(self) -> FundApiClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        logger.debug("API request %s %s", method, path)
        response = await self._http.request(method, path, **kwargs)
        logger.debug("API response %s %s", response.status_code, path)
        response.raise_for_status()
        return unwrap_envelope(response.json())

    async def get_fund_index(
        self,
        page_num: int = 1,
        page_size: int = 10,
        sort: int = 0,
        fund_type: str = "",
    ) -> FundList:
        """Fetch the backend's list of 4433 funds."""
        params: dict = {"page_num": page_num, "page_size": page_size, "sort": sort}
        if fund_type:
            params["type"] = fund_type
        data = await self._request("GET", "/api/fund", params=params)
        return _parse_fund_list(data)

    async def filter_funds(
        self,
        criteria: Optional[ScreeningCriteria] = None,
        page_num: int = 1,
        page_size: int = 10,
        sort: int = 0,
        fund_type: str = "",
    ) -> FundList:
        """Fetch funds matching ``criteria`` on the backend's filter endpoint."""
        params: dict = {"page_num": page_num, "page_size": page_size, "sort": sort}
        if fund_type:
            params["type"] = fund_type
        if criteria is not None:
            params.update(criteria.to_query_params())
        data = await self._request("GET", "/api/fund/filter", params=params)
        return _parse_fund_list(data)

    async def check_funds(self, codes: list[str]) -> list[Fund]:
        """Fetch full snapshots for the given fund codes."""
        codes = _split_codes(codes)
        if not codes:
            raise ValueError("At least one fund code is required")
        data = await self._request("POST", "/api/fund/check", json={"fundcode": " ".join(codes)})
        funds = parse_funds(data.get("funds"))
        if len(funds) < len(codes):
            logger.info("Backend returned %d of %d requested funds", len(funds), len(codes))
        return funds

    async def get_fund_managers(
        self,
        name: str = "",
        min_working_years: Optional[int] = None,
        min_yieldse: Optional[float] = None,
        max_current_fund_count: Optional[int] = None,
        min_scale: Optional[float] = None,
        sort: ManagerSort = ManagerSort.ANNUAL_RETURN,
        page_num: int = 1,
        page_size: int = 10,
        fund_type: str = "",
    ) -> ManagerList:
        """Fetch fund managers matching tenure, return, workload and scale bounds."""
        params: dict = {"page_num": page_num, "page_size": page_size, "sort": ManagerSort(sort).value}
        optional = {
            "name": name,
            "min_working_years": min_working_years,
            "min_yieldse": min_yieldse,
            "max_current_fund_count": max_current_fund_count,
            "min_scale": min_scale,
            "fund_type": fund_type,
        }
        params.update({k: v for k, v in optional.items() if v not in (None, "")})
        data = await self._request("GET", "/api/fund/managers", params=params)

        managers = []
        for record in data.get("managers") or []:
            try:
                managers.append(FundManagerInfo.model_validate(record))
            except ValidationError as exc:
                logger.warning("Skipping malformed manager record: %s", exc)
        pagination = data.get("pagination") or {}
        return ManagerList(managers=managers, total=pagination.get("total") or len(managers))

    async def get_fund_similarity(self, codes: list[str]) -> HoldingsSimilarity:
        """Compare the holdings of two or more funds."""
        codes = _split_codes(codes)
        if not codes:
            raise ValueError("At least one fund code is required")
        data = await self._request("GET", "/api/fund/similarity", params={"codes": " ".join(codes)})
        return HoldingsSimilarity.model_validate(data)

    async def query_by_stock(self, keywords: str) -> StockFundQuery:
        """Find funds holding stocks that match ``keywords``."""
        keywords = keywords.strip()
        if not keywords:
            raise ValueError("Stock keywords are required")
        data = await self._request("POST", "/api/fund/query_by_stock", json={"keywords": keywords})
        return StockFundQuery.model_validate(data)
