# storefront/services/commerce_client.py
import asyncio
from typing import Any

import requests
from requests import RequestException

from storefront.domain.errors import TransportError
from storefront.utils.logging import get_logger
from storefront.utils.retry import http_retry
from storefront.utils.settings import (
    COMMERCE_API_URL,
    COMMERCE_HTTP_TIMEOUT,
    COMMERCE_STORE_PREFIX,
    PUBLISHABLE_API_KEY,
)

logger = get_logger(__name__)


class CommerceClient:
    """
    HTTP/JSON klient backendu sklepu (requests)
    -naglowek x-publishable-api-key zawsze, Bearer gdy jest token
    -blokujace I/O w watku roboczym, petla asyncio nie jest blokowana
    -GET ponawiany przy bledach polaczenia, mutacje wysylane raz
    -timeouty tylko tutaj, orchestrator nie ma wlasnych deadline'ow
    """

    def __init__(
        self,
        base_url: str | None = None,
        publishable_key: str | None = None,
        store_prefix: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        self.base_url = (base_url or COMMERCE_API_URL).rstrip("/")
        self.store_prefix = (COMMERCE_STORE_PREFIX if store_prefix is None else store_prefix).rstrip("/")
        self.publishable_key = publishable_key if publishable_key is not None else PUBLISHABLE_API_KEY
        self.timeout = timeout or COMMERCE_HTTP_TIMEOUT
        self.session = session or requests.Session()

    def _headers(self, token: str | None) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "x-publishable-api-key": self.publishable_key,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        logger.info(f"CommerceClient {method} {url}")
        return self.session.request(method, url, timeout=self.timeout, **kwargs)

    @http_retry()
    def _send_idempotent(self, method: str, url: str, **kwargs) -> requests.Response:
        return self._send(method, url, **kwargs)

    def _call(
        self,
        method: str,
        path: str,
        token: str | None,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        store: bool = True,
    ) -> bytes:
        url = f"{self.base_url}{self.store_prefix if store else ''}{path}"
        send = self._send_idempotent if method == "GET" else self._send

        try:
            resp = send(method, url, headers=self._headers(token), json=json, params=params)
        except RequestException as e:
            logger.error(f"{method} {path} failed: {e}")
            raise TransportError(f"{method} {path} failed: {e}") from e

        if resp.status_code >= 400:
            logger.error(f"{method} {path} -> {resp.status_code}: {resp.text[:500]}")
            raise TransportError(f"{method} {path} -> HTTP {resp.status_code}", status=resp.status_code)

        return resp.content

    async def _acall(self, method: str, path: str, token: str | None, **kwargs) -> bytes:
        return await asyncio.to_thread(self._call, method, path, token, **kwargs)

    #carts
    async def create_cart(self, region_id: str, token: str | None) -> bytes:
        return await self._acall("POST", "/carts", token, json={"region_id": region_id})

    async def get_cart(self, cart_id: str, token: str | None) -> bytes:
        return await self._acall("GET", f"/carts/{cart_id}", token)

    async def update_cart(self, cart_id: str, body: dict[str, Any], token: str | None) -> bytes:
        return await self._acall("POST", f"/carts/{cart_id}", token, json=body)

    async def add_line_item(self, cart_id: str, variant_id: str, quantity: int, token: str | None) -> bytes:
        return await self._acall(
            "POST",
            f"/carts/{cart_id}/line-items",
            token,
            json={"variant_id": variant_id, "quantity": quantity},
        )

    async def update_line_item(
        self, cart_id: str, line_item_id: str, quantity: int, token: str | None
    ) -> bytes:
        return await self._acall(
            "POST", f"/carts/{cart_id}/line-items/{line_item_id}", token, json={"quantity": quantity}
        )

    async def delete_line_item(self, cart_id: str, line_item_id: str, token: str | None) -> bytes:
        return await self._acall("DELETE", f"/carts/{cart_id}/line-items/{line_item_id}", token)

    async def associate_customer(self, cart_id: str, token: str) -> bytes:
        return await self._acall("POST", f"/carts/{cart_id}/customer", token, json={})

    async def add_shipping_method(self, cart_id: str, option_id: str, token: str | None) -> bytes:
        return await self._acall(
            "POST", f"/carts/{cart_id}/shipping-methods", token, json={"option_id": option_id}
        )

    async def complete_cart(self, cart_id: str, token: str | None) -> bytes:
        return await self._acall("POST", f"/carts/{cart_id}/complete", token, json={})

    #payments
    async def create_payment_collection(self, cart_id: str, token: str | None) -> bytes:
        return await self._acall("POST", "/payment-collections", token, json={"cart_id": cart_id})

    async def create_payment_session(
        self, payment_collection_id: str, provider_id: str, token: str | None
    ) -> bytes:
        return await self._acall(
            "POST",
            f"/payment-collections/{payment_collection_id}/payment-sessions",
            token,
            json={"provider_id": provider_id},
        )

    async def list_payment_providers(self, region_id: str, token: str | None) -> bytes:
        return await self._acall("GET", "/payment-providers", token, params={"region_id": region_id})

    async def list_shipping_options(self, cart_id: str, token: str | None) -> bytes:
        return await self._acall("GET", "/shipping-options", token, params={"cart_id": cart_id})

    #auth / customer
    async def login(self, email: str, password: str) -> bytes:
        return await self._acall(
            "POST",
            "/auth/customer/emailpass",
            None,
            json={"email": email, "password": password},
            store=False,
        )

    async def get_customer(self, token: str) -> bytes:
        return await self._acall("GET", "/customers/me", token)

    async def register(self, email: str, password: str) -> bytes:
        #token z rejestracji sluzy tylko do utworzenia profilu
        return await self._acall(
            "POST",
            "/auth/customer/emailpass/register",
            None,
            json={"email": email, "password": password},
            store=False,
        )

    async def create_customer(self, body: dict[str, Any], token: str) -> bytes:
        return await self._acall("POST", "/customers", token, json=body)

    async def add_customer_address(self, body: dict[str, Any], token: str) -> bytes:
        return await self._acall("POST", "/customers/me/addresses", token, json=body)

    async def update_customer_address(self, address_id: str, body: dict[str, Any], token: str) -> bytes:
        return await self._acall("POST", f"/customers/me/addresses/{address_id}", token, json=body)

    async def delete_customer_address(self, address_id: str, token: str) -> bytes:
        return await self._acall("DELETE", f"/customers/me/addresses/{address_id}", token)

    #orders
    async def list_orders(self, token: str) -> bytes:
        return await self._acall("GET", "/orders", token)
