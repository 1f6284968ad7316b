"""API-level tests for the wind/price routes."""

from __future__ import annotations

import json
from unittest.mock import patch

import httpx
import pytest
import requests
from fastapi.testclient import TestClient

import api
from data.forecast import ForecastPoint
from data.prices import PricePoint

CLIENT_IP = "203.0.113.7"

FORECAST = [
    ForecastPoint("2023-02-15T14:00", 3.2, 5.1),
    ForecastPoint("2023-02-15T15:00", 4.0, 6.3),
]
PRICES = [PricePoint("2023-02-15T14:00", 0.45)]


def _with_client_address(app, host: str):
    """ASGI wrapper that sets the peer address seen by the app."""
    async def wrapped(scope, receive, send):
        if scope["type"] == "http":
            scope = dict(scope, client=(host, 50000))
        await app(scope, receive, send)
    return wrapped


@pytest.fixture
def geo_requests(monkeypatch):
    """Route geolocation through a mock transport; returns the request log."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={
            "status": "success", "country": "Sweden", "city": "Malmo",
            "lat": 55.6, "lon": 13.0,
        })

    monkeypatch.setattr(api, "_http_client", httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    return seen


@pytest.fixture
def upstream():
    """Patch both fetchers; yields (forecast_mock, prices_mock)."""
    with patch.object(api._forecast_client, "get_forecast", return_value=FORECAST) as fc, \
         patch.object(api._price_client, "get_prices", return_value=PRICES) as pc:
        yield fc, pc


@pytest.fixture
def client() -> TestClient:
    return TestClient(_with_client_address(api.app, CLIENT_IP))


class TestWindJson:
    @pytest.mark.parametrize("path", ["/wind", "/wind.json"])
    def test_merged_json(self, client, upstream, geo_requests, path: str) -> None:
        resp = client.get(path)

        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/json"
        assert resp.text == (
            "[\n"
            '{"hour": "2023-02-15T14:00", "speed": 3.20, "gust": 5.10, "price": 0.45},\n'
            '{"hour": "2023-02-15T15:00", "speed": 4.00, "gust": 6.30, "price": 0.00}\n'
            "]\n"
        )
        assert json.loads(resp.text)[1]["price"] == 0.0

    def test_geolocated_coordinates_used(self, client, upstream, geo_requests) -> None:
        forecast_mock, prices_mock = upstream

        client.get("/wind.json")

        assert len(geo_requests) == 1
        assert CLIENT_IP in str(geo_requests[0].url)
        forecast_mock.assert_called_once_with(55.6, 13.0)
        prices_mock.assert_called_once_with(api.settings.price_region)

    def test_explicit_coordinates_skip_geolocation(self, client, upstream, geo_requests) -> None:
        forecast_mock, _ = upstream

        resp = client.get("/wind.json?lat=59.33&long=18.07")

        assert resp.status_code == 200
        assert geo_requests == []
        forecast_mock.assert_called_once_with(59.33, 18.07)

    def test_head(self, client, upstream, geo_requests) -> None:
        assert client.head("/wind.json").status_code == 200


class TestWindHtml:
    def test_chart_page(self, client, upstream, geo_requests) -> None:
        resp = client.get("/wind.html")

        assert resp.status_code == 200
        assert resp.headers["content-type"] == "text/html; charset=utf-8"
        assert "Winds at Malmo, Sweden (55.60, 13.00)" in resp.text
        assert "var prices = [ 0.45, 0.00 ];" in resp.text

    def test_browser_location_title(self, client, upstream, geo_requests) -> None:
        resp = client.get("/wind.html?lat=55.6&long=13.0")
        assert "Winds at browser location (55.60, 13.00)" in resp.text


class TestRootAndUnknownPaths:
    @pytest.mark.parametrize("path", ["/", "/index.html", "/some/where"])
    def test_navigation_page(self, client, upstream, geo_requests, path: str) -> None:
        forecast_mock, prices_mock = upstream

        resp = client.get(path)

        assert resp.status_code == 200
        assert 'href="/wind.html"' in resp.text
        assert 'href="/wind.json"' in resp.text
        forecast_mock.assert_not_called()
        prices_mock.assert_not_called()

    def test_root_keeps_explicit_coordinates(self, client, upstream, geo_requests) -> None:
        resp = client.get("/?lat=55.6&long=13.0")
        assert "/wind.html?lat=55.6&amp;long=13.0" in resp.text

    def test_unknown_wind_subpath_is_empty(self, client, upstream, geo_requests) -> None:
        forecast_mock, prices_mock = upstream

        resp = client.get("/wind.csv")

        assert resp.status_code == 200
        assert resp.content == b""
        forecast_mock.assert_not_called()
        prices_mock.assert_not_called()


class TestErrors:
    @pytest.mark.parametrize("method", ["POST", "PUT", "DELETE", "PATCH"])
    def test_method_not_allowed(self, client, upstream, geo_requests, method: str) -> None:
        forecast_mock, prices_mock = upstream

        resp = client.request(method, "/wind.json")

        assert resp.status_code == 405
        assert resp.text == "This method is not allowed\n"
        assert geo_requests == []
        forecast_mock.assert_not_called()
        prices_mock.assert_not_called()

    def test_unparseable_client_address(self, upstream, geo_requests) -> None:
        forecast_mock, prices_mock = upstream
        plain = TestClient(api.app)  # peer address is "testclient"

        resp = plain.get("/wind.json")

        assert resp.status_code == 400
        assert resp.text == "unable to parse the client IP \"testclient\"\n"
        assert geo_requests == []
        forecast_mock.assert_not_called()
        prices_mock.assert_not_called()

    def test_unparseable_coordinates(self, client, upstream, geo_requests) -> None:
        resp = client.get("/wind.json?lat=north&long=13")
        assert resp.status_code == 400
        upstream[0].assert_not_called()

    def test_geolocation_failure(self, client, upstream, monkeypatch) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"status": "fail", "message": "reserved range"})

        monkeypatch.setattr(api, "_http_client", httpx.AsyncClient(transport=httpx.MockTransport(handler)))

        resp = client.get("/wind.json")

        assert resp.status_code == 500
        assert resp.text == f"unable to geolocate client ip \"{CLIENT_IP}\": reserved range\n"
        upstream[0].assert_not_called()

    def test_forecast_failure_is_bad_gateway(self, client, upstream, geo_requests) -> None:
        forecast_mock, _ = upstream
        forecast_mock.side_effect = requests.exceptions.ConnectionError("open-meteo unreachable")

        resp = client.get("/wind.json")

        assert resp.status_code == 502
        assert resp.text == "open-meteo unreachable\n"

    def test_price_failure_is_bad_gateway(self, client, upstream, geo_requests) -> None:
        _, prices_mock = upstream
        prices_mock.side_effect = requests.exceptions.HTTPError("404 Client Error: Not Found")

        resp = client.get("/wind.html")

        assert resp.status_code == 502
        assert "404 Client Error" in resp.text
        assert "<html>" not in resp.text
