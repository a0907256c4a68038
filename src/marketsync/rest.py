"""HTTP side of the marketplace: login-by-HTTP, product listing, admin maintenance.

These are plain request/response calls with no part in live synchronization;
the realtime view comes from the WebSocket session.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Literal

import httpx
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential_jitter

from marketsync.config import Settings


Json = dict[str, Any]


def _is_retryable_exception(exc: BaseException) -> bool:
    # Network / timeout errors are usually retryable.
    if isinstance(exc, httpx.RequestError):
        return True

    # Only retry HTTP status errors that are plausibly transient.
    if isinstance(exc, httpx.HTTPStatusError):
        status = getattr(exc.response, "status_code", None)
        if status == 429:
            return True
        if isinstance(status, int) and 500 <= status <= 599:
            return True
        return False

    return False


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    price: float
    stock: int
    sold_out: bool

    @classmethod
    def from_json(cls, data: Json) -> "Product":
        return cls(
            id=int(data["id"]),
            name=str(data.get("name") or ""),
            price=float(data.get("price") or 0.0),
            stock=int(data.get("stock") or 0),
            sold_out=bool(data.get("soldOut", False)),
        )


@dataclass
class MarketApiClient:
    base_url: str
    token: str | None = None
    transport: httpx.AsyncBaseTransport | None = None

    _client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "MarketApiClient":
        return cls(base_url=settings.api_url)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(10.0), transport=self.transport)
        return self._client

    def _auth_headers(self) -> dict[str, str]:
        if not self.token:
            raise RuntimeError("Admin endpoint called but no token is set; log in first")
        return {"Authorization": self.token}

    @retry(
        wait=wait_exponential_jitter(initial=0.2, max=2.0),
        stop=stop_after_attempt(3),
        retry=retry_if_exception(_is_retryable_exception),
        reraise=True,
    )
    async def request(
        self,
        method: Literal["GET", "POST"],
        path: str,
        *,
        json: dict[str, Any] | None = None,
        auth_required: bool = False,
    ) -> Json:
        headers: dict[str, str] = {}
        if auth_required:
            headers.update(self._auth_headers())

        url = f"{self.base_url}{path}"
        resp = await self._get_client().request(method, url, json=json, headers=headers)

        if resp.status_code == 429:
            retry_after = resp.headers.get("Retry-After")
            delay = 1.0
            if retry_after:
                try:
                    delay = float(retry_after)
                except ValueError:
                    delay = 1.0
            await asyncio.sleep(max(0.5, min(delay, 10.0)))

        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            # Attach the body; the server puts the reason there (e.g. "Forbidden - Not Admin").
            body_preview = resp.text
            if body_preview:
                raise httpx.HTTPStatusError(
                    f"{e} | body={body_preview}",
                    request=e.request,
                    response=e.response,
                ) from None
            raise
        if not resp.content:
            return {}
        try:
            data = resp.json()
        except ValueError:
            # Admin routes answer with plain text.
            return {"message": resp.text}
        return data if isinstance(data, dict) else {"data": data}

    # -------- Public endpoints --------

    async def login(self, email: str, password: str) -> str:
        data = await self.request("POST", "/api/login", json={"email": email, "password": password})
        token = str(data.get("token") or "")
        if not token:
            raise RuntimeError("Login response did not contain a token")
        self.token = token
        return token

    async def get_products(self) -> list[Product]:
        data = await self.request("GET", "/api/products")
        return [Product.from_json(p) for p in data.get("products") or []]

    # -------- Admin endpoints --------

    async def add_product(self, *, name: str, price: float, stock: int, threshold: int = 1) -> Json:
        return await self.request(
            "POST",
            "/api/admin/products/add",
            json={"name": name, "price": price, "stock": stock, "threshold": threshold},
            auth_required=True,
        )

    async def remove_product(self, product_id: int) -> Json:
        return await self.request(
            "POST",
            "/api/admin/products/remove",
            json={"productId": product_id},
            auth_required=True,
        )

    async def update_stock(self, product_id: int, new_stock: int) -> Json:
        return await self.request(
            "POST",
            "/api/admin/products/updateStock",
            json={"productId": product_id, "newStock": new_stock},
            auth_required=True,
        )

    async def update_threshold(self, product_id: int, threshold: int) -> Json:
        """Stock level at or below which the product is reported as sold out."""
        return await self.request(
            "POST",
            "/api/admin/products/updateThreshold",
            json={"productId": product_id, "threshold": threshold},
            auth_required=True,
        )
