# storefront/services/commerce_base.py
from __future__ import annotations

from typing import Any, Protocol


class CommerceGateway(Protocol):
    """Commerce backend as seen by the orchestrator.

    Every method returns the raw response body (bytes, parsed JSON or None) and
    raises TransportError on non-2xx status or connectivity failure. Decoding is
    left to the interpreter.
    """

    async def create_cart(self, region_id: str, token: str | None) -> Any: ...

    async def get_cart(self, cart_id: str, token: str | None) -> Any: ...

    async def update_cart(self, cart_id: str, body: dict[str, Any], token: str | None) -> Any: ...

    async def add_line_item(
        self, cart_id: str, variant_id: str, quantity: int, token: str | None
    ) -> Any: ...

    async def update_line_item(
        self, cart_id: str, line_item_id: str, quantity: int, token: str | None
    ) -> Any: ...

    async def delete_line_item(self, cart_id: str, line_item_id: str, token: str | None) -> Any: ...

    async def associate_customer(self, cart_id: str, token: str) -> Any: ...

    async def add_shipping_method(self, cart_id: str, option_id: str, token: str | None) -> Any: ...

    async def create_payment_collection(self, cart_id: str, token: str | None) -> Any: ...

    async def create_payment_session(
        self, payment_collection_id: str, provider_id: str, token: str | None
    ) -> Any: ...

    async def complete_cart(self, cart_id: str, token: str | None) -> Any: ...

    async def login(self, email: str, password: str) -> Any: ...

    async def get_customer(self, token: str) -> Any: ...

    async def list_shipping_options(self, cart_id: str, token: str | None) -> Any: ...

    async def list_payment_providers(self, region_id: str, token: str | None) -> Any: ...

    async def register(self, email: str, password: str) -> Any: ...

    async def create_customer(self, body: dict[str, Any], token: str) -> Any: ...

    async def add_customer_address(self, body: dict[str, Any], token: str) -> Any: ...

    async def update_customer_address(self, address_id: str, body: dict[str, Any], token: str) -> Any: ...

    async def delete_customer_address(self, address_id: str, token: str) -> Any: ...

    async def list_orders(self, token: str) -> Any: ...
