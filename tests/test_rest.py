"""Tests for the HTTP catalog/admin client (httpx.MockTransport, no network)."""

from __future__ import annotations

import json
import sys
from pathlib import Path

_SRC_ROOT = Path(__file__).resolve().parents[1] / "src"
if str(_SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(_SRC_ROOT))

import httpx
import pytest

from marketsync import MarketApiClient, Product


BASE = "http://localhost:8080"


class _Recorder:
    def __init__(self, responses: list[httpx.Response]) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)


def _client(*responses: httpx.Response, token: str | None = None) -> tuple[MarketApiClient, _Recorder]:
    recorder = _Recorder(list(responses))
    api = MarketApiClient(base_url=BASE, token=token, transport=httpx.MockTransport(recorder))
    return api, recorder


class TestPublicEndpoints:
    @pytest.mark.asyncio
    async def test_login_stores_token(self):
        api, rec = _client(httpx.Response(200, json={"token": "abc"}))
        token = await api.login("a@b.c", "pw")

        assert token == "abc"
        assert api.token == "abc"
        req = rec.requests[0]
        assert req.method == "POST"
        assert req.url.path == "/api/login"
        assert json.loads(req.content) == {"email": "a@b.c", "password": "pw"}
        await api.aclose()

    @pytest.mark.asyncio
    async def test_login_without_token_fails(self):
        api, _ = _client(httpx.Response(200, json={}))
        with pytest.raises(RuntimeError):
            await api.login("a@b.c", "pw")
        await api.aclose()

    @pytest.mark.asyncio
    async def test_get_products(self):
        body = {"products": [{"id": 1, "name": "Lamp", "price": 25.0, "stock": 0, "soldOut": True}]}
        api, _ = _client(httpx.Response(200, json=body))
        products = await api.get_products()
        assert products == [Product(id=1, name="Lamp", price=25.0, stock=0, sold_out=True)]
        await api.aclose()


class TestAdminEndpoints:
    @pytest.mark.asyncio
    async def test_requires_token(self):
        api, rec = _client()
        with pytest.raises(RuntimeError):
            await api.remove_product(3)
        assert rec.requests == []
        await api.aclose()

    @pytest.mark.asyncio
    async def test_sends_authorization_header(self):
        api, rec = _client(httpx.Response(200, text="Stock updated"), token="abc")
        out = await api.update_stock(3, 10)

        assert out == {"message": "Stock updated"}
        req = rec.requests[0]
        assert req.headers["Authorization"] == "abc"
        assert req.url.path == "/api/admin/products/updateStock"
        assert json.loads(req.content) == {"productId": 3, "newStock": 10}
        await api.aclose()

    @pytest.mark.asyncio
    async def test_forbidden_is_not_retried(self):
        api, rec = _client(httpx.Response(403, text="Forbidden - Not Admin"), token="abc")
        with pytest.raises(httpx.HTTPStatusError, match="Forbidden - Not Admin"):
            await api.add_product(name="Lamp", price=25.0, stock=5)
        assert len(rec.requests) == 1
        await api.aclose()

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self):
        api, rec = _client(
            httpx.Response(503, text="busy"),
            httpx.Response(200, json={"ok": True}),
            token="abc",
        )
        out = await api.update_threshold(3, 2)
        assert out == {"ok": True}
        assert len(rec.requests) == 2
        await api.aclose()
