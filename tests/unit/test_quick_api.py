"""Unit tests for quick balance APIs (httpx mock transport)."""

from __future__ import annotations

import httpx

from balancewatch.fetcher.quick_api import DebankBalanceApi, build_quick_apis
from balancewatch.platforms import Platform

ADDRESS = "0x" + "AB" * 20
URL = f"https://debank.com/profile/{ADDRESS}"


def _api(handler, key: str = "secret") -> DebankBalanceApi:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return DebankBalanceApi(key, base_url="https://api.test/v1/", client=client)


class TestDebankBalanceApi:
    def test_returns_total(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"total_usd_value": 54188.25})

        assert _api(handler).fetch_total(URL) == 54188.25
        request = seen[0]
        assert request.url.path == "/v1/user/total_balance"
        assert request.url.params["id"] == ADDRESS.lower()
        assert request.headers["AccessKey"] == "secret"

    def test_no_key_makes_no_request(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("unexpected request")

        assert _api(handler, key="").fetch_total(URL) is None

    def test_no_address_in_url(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("unexpected request")

        assert _api(handler).fetch_total("https://debank.com/profile/vitalik.eth") is None

    def test_http_error_degrades_to_none(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, json={"error": "rate limited"})

        assert _api(handler).fetch_total(URL) is None

    def test_transport_error_degrades_to_none(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        assert _api(handler).fetch_total(URL) is None

    def test_bad_payload(self) -> None:
        assert _api(lambda r: httpx.Response(200, text="not json")).fetch_total(URL) is None
        assert _api(lambda r: httpx.Response(200, json={})).fetch_total(URL) is None
        assert _api(lambda r: httpx.Response(200, json={"total_usd_value": "n/a"})).fetch_total(URL) is None


def test_build_quick_apis(settings) -> None:
    assert build_quick_apis(settings) == {}
    settings.quick_api.debank_access_key = "k"
    apis = build_quick_apis(settings)
    assert isinstance(apis[Platform.DEBANK], DebankBalanceApi)
