"""Tests for the backend client, using an in-process mock transport."""

import asyncio
import json

import httpx
import pytest

from conftest import make_fund_data
from fund_screening.config import Settings
from fund_screening.core.clients.investool import FundApiClient, FundApiError, parse_funds, unwrap_envelope
from fund_screening.core.models import ScreeningCriteria


def envelope(data, code=200, message="success"):
    return {"code": code, "message": message, "data": data, "timestamp": 1717200000}


def make_client(handler) -> FundApiClient:
    return FundApiClient(httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://backend.test"))


def run(coro):
    return asyncio.run(coro)


class TestEnvelope:
    def test_returns_data(self):
        assert unwrap_envelope(envelope({"funds": []})) == {"funds": []}

    def test_body_without_data_returned_as_is(self):
        assert unwrap_envelope({"fund_list": []}) == {"fund_list": []}

    def test_error_field_raises(self):
        with pytest.raises(FundApiError, match="bad params") as exc_info:
            unwrap_envelope({"code": 400, "message": "参数无效", "error": "bad params"})
        assert exc_info.value.code == 400

    def test_error_code_raises(self):
        with pytest.raises(FundApiError, match="内部服务器错误"):
            unwrap_envelope({"code": 500, "message": "内部服务器错误"})


def test_parse_funds_accepts_partial_records():
    funds = parse_funds([{"name": "no code"}, make_fund_data(code="D", manager={"manage_days": 1825.5})])
    assert [f.code for f in funds] == ["", "D"]
    assert funds[0].name == "no code"
    assert funds[1].manager.manage_days == 1825.5


def test_parse_funds_skips_malformed(caplog):
    records = [
        make_fund_data(code="A"),
        make_fund_data(code="B", net_assets_scale=-1),
        make_fund_data(code="C", performance={"month_3_rank_ratio": -3}),
        "not a record",
    ]
    funds = parse_funds(records)
    assert [f.code for f in funds] == ["A"]
    assert "Skipping malformed fund record" in caplog.text


class TestFundApiClient:
    def test_get_fund_index(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=envelope({
                "fund_list": [make_fund_data(code="A"), make_fund_data(code="B")],
                "updated_at": "2024-06-01 02:00:00",
                "all_fund_count": 9000,
                "fund_4433_count": 2,
                "fund_types": ["混合型"],
            }))

        async def go():
            async with make_client(handler) as client:
                return await client.get_fund_index(page_num=2, page_size=50, fund_type="混合型")

        fund_list = run(go())
        assert seen["path"] == "/api/fund"
        assert seen["params"] == {"page_num": "2", "page_size": "50", "sort": "0", "type": "混合型"}
        assert [f.code for f in fund_list.funds] == ["A", "B"]
        assert fund_list.fund_4433_count == 2
        assert fund_list.updated_at == "2024-06-01 02:00:00"

    def test_filter_funds_sends_wire_names(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = request.url.params
            return httpx.Response(200, json=envelope({"fund_list": [make_fund_data()]}))

        criteria = ScreeningCriteria(years_235_rank_ratio_max=20, allowed_types={"股票型", "混合型"}, min_avg_135_sharpe=1.2)
        fund_list = run(make_client(handler).filter_funds(criteria))

        params = seen["params"]
        assert params["this_year_235_rank_ratio"] == "20.0"
        assert params["min_135_avg_sharp"] == "1.2"
        assert params.get_list("types") == ["混合型", "股票型"]
        assert "min_scale" not in params
        assert len(fund_list.funds) == 1

    def test_check_funds(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=envelope({"funds": [make_fund_data(code="000001")], "param": seen["body"]}))

        funds = run(make_client(handler).check_funds(["000001", " 110011 ", ""]))
        assert seen["method"] == "POST"
        assert seen["body"] == {"fundcode": "000001 110011"}
        assert [f.code for f in funds] == ["000001"]
        assert funds[0].risk.sharpe.avg_135 == 1

    def test_get_fund_index_passes_sort(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=envelope({"fund_list": []}))

        run(make_client(handler).get_fund_index(sort=3))
        assert seen["params"]["sort"] == "3"

    def test_check_funds_requires_codes(self):
        def handler(request):
            raise AssertionError("no request expected")

        with pytest.raises(ValueError):
            run(make_client(handler).check_funds(["  "]))

    def test_get_fund_managers(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json=envelope({
                "managers": [
                    {"id": "1", "name": "Zhang Kun", "working_years": 12, "yieldse": 18.6, "best_fund_is_4433": True},
                    {"id": "2", "name": "Broken", "current_fund_count": "many"},
                    {"id": "3", "name": "Xie Zhiyu", "working_years": 9.5, "scale": 320.0},
                ],
                "pagination": {"page_num": 1, "page_size": 10, "total": 42, "total_pages": 5},
            }))

        result = run(make_client(handler).get_fund_managers(min_working_years=8, min_yieldse=15, sort="scale"))
        assert seen["path"] == "/api/fund/managers"
        assert seen["params"] == {
            "page_num": "1",
            "page_size": "10",
            "sort": "scale",
            "min_working_years": "8",
            "min_yieldse": "15",
        }
        assert [m.name for m in result.managers] == ["Zhang Kun", "Xie Zhiyu"]
        assert result.managers[0].best_fund_is_4433 is True
        assert result.total == 42

    def test_get_fund_managers_rejects_unknown_sort(self):
        def handler(request):
            raise AssertionError("no request expected")

        with pytest.raises(ValueError):
            run(make_client(handler).get_fund_managers(sort="age"))

    def test_get_fund_similarity(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["codes"] = request.url.params["codes"]
            return httpx.Response(200, json=envelope({"fund_count": 2, "avg_similarity": 37.5}))

        result = run(make_client(handler).get_fund_similarity(["000001", " 110011"]))
        assert seen == {"path": "/api/fund/similarity", "codes": "000001 110011"}
        assert result.fund_count == 2
        assert result.avg_similarity == 37.5

    def test_get_fund_similarity_requires_codes(self):
        def handler(request):
            raise AssertionError("no request expected")

        with pytest.raises(ValueError):
            run(make_client(handler).get_fund_similarity([]))

    def test_query_by_stock(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=envelope({"fund_count": 12, "stock_count": 2, "message": "ok"}))

        result = run(make_client(handler).query_by_stock("  贵州茅台 600036 "))
        assert seen["method"] == "POST"
        assert seen["body"] == {"keywords": "贵州茅台 600036"}
        assert (result.fund_count, result.stock_count, result.message) == (12, 2, "ok")

    def test_query_by_stock_requires_keywords(self):
        def handler(request):
            raise AssertionError("no request expected")

        with pytest.raises(ValueError):
            run(make_client(handler).query_by_stock("   "))

    def test_http_error_propagates(self):
        def handler(request):
            return httpx.Response(502, text="bad gateway")

        with pytest.raises(httpx.HTTPStatusError):
            run(make_client(handler).get_fund_index())

    def test_error_envelope_propagates(self):
        def handler(request):
            return httpx.Response(200, json={"code": 400, "message": "基金代码不能为空", "error": "empty code"})

        with pytest.raises(FundApiError):
            run(make_client(handler).check_funds(["000001"]))


def test_from_settings():
    settings = Settings(api_base_url="http://funds.example:4869", timeout_seconds=5)

    async def go():
        client = FundApiClient.from_settings(settings)
        try:
            return client._http.base_url, client._http.timeout.read
        finally:
            await client.aclose()

    base_url, read_timeout = run(go())
    assert base_url.host == "funds.example"
    assert base_url.port == 4869
    assert read_timeout == 5
