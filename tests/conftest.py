from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from storefront.bootstrap import Container, build_container
from storefront.domain.errors import TransportError
from storefront.services.slot_store import MemorySlotStore

CURRENCY_BY_REGION = {"reg_eu": "eur", "reg_us": "usd", "reg_pl": "pln"}

SHIPPING_ADDRESS = {
    "id": "addr_ship",
    "first_name": "Anna",
    "last_name": "Nowak",
    "address_1": "Prosta 1",
    "city": "Warszawa",
    "country_code": "pl",
    "postal_code": "00-001",
    "is_default_shipping": True,
}

BILLING_ADDRESS = {
    "id": "addr_bill",
    "first_name": "Anna",
    "last_name": "Nowak",
    "company": "Nowak sp. z o.o.",
    "address_1": "Krzywa 7",
    "city": "Krakow",
    "country_code": "pl",
    "postal_code": "30-001",
    "is_default_billing": True,
}


def encode(payload: Any) -> bytes:
    return json.dumps(payload).encode()


class FakeCommerce:
    """In-memory commerce backend implementing the gateway protocol."""

    def __init__(self) -> None:
        self.carts: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, ...]] = []
        self.token = "tok_1"
        self.password = "secret"
        self.customer: dict[str, Any] = {
            "id": "cus_1",
            "email": "anna@example.com",
            "first_name": "Anna",
            "last_name": "Nowak",
            "addresses": [dict(SHIPPING_ADDRESS), dict(BILLING_ADDRESS)],
        }
        self.registration_token = "reg_tok_1"
        self.registered: set[str] = {self.customer["email"]}
        self.orders: list[dict[str, Any]] = []
        self.shipping_options = [
            {"id": "so_1", "name": "Kurier", "amount": 1500, "price_type": "flat"},
            {"id": "so_2", "name": "Paczkomat", "amount": 900, "price_type": "flat"},
        ]
        self.payment_providers = [
            {"id": "pp_system_default", "is_enabled": True},
            {"id": "pp_stripe_stripe", "is_enabled": "true"},
            {"id": "pp_disabled", "is_enabled": False},
        ]
        #method -> kolejka wyjatkow / nadpisanych body
        self.failures: dict[str, list[Exception]] = {}
        self.overrides: dict[str, list[Any]] = {}
        self.delays: dict[str, float] = {}
        self.complete_rejects = False

        self._seq = 0
        self.in_flight_updates = 0
        self.max_in_flight_updates = 0
        self.finished_updates = 0
        self.finished_updates_at_get: list[int] = []

    # -- helpers ----------------------------------------------------------
    def fail(self, method: str, status: int | None = None, times: int = 1) -> None:
        error = TransportError(f"{method} failed", status=status)
        self.failures.setdefault(method, []).extend([error] * times)

    def override(self, method: str, body: Any) -> None:
        self.overrides.setdefault(method, []).append(body)

    def count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)

    def _next_id(self, prefix: str) -> str:
        self._seq += 1
        return f"{prefix}_{self._seq}"

    def _totals(self, cart: dict[str, Any]) -> dict[str, Any]:
        subtotal = sum(i["unit_price"] * i["quantity"] for i in cart["items"])
        cart["subtotal"] = subtotal
        cart["total"] = subtotal + cart["shipping_total"]
        return cart

    def seed_cart(self, region_id: str = "reg_eu", items: list[dict] | None = None, **extra: Any) -> dict:
        cart = {
            "id": self._next_id("cart"),
            "region_id": region_id,
            "currency_code": CURRENCY_BY_REGION.get(region_id, "eur"),
            "customer_id": None,
            "items": items or [],
            "shipping_total": 0,
            "tax_total": 0,
            "discount_total": 0,
            "shipping_address": None,
            "billing_address": None,
            "payment_collection": None,
        }
        cart.update(extra)
        self.carts[cart["id"]] = self._totals(cart)
        return cart

    async def _hook(self, name: str, *args: Any) -> Any:
        self.calls.append((name, *[str(a) for a in args]))
        delay = self.delays.get(name)
        if delay:
            await asyncio.sleep(delay)
        queue = self.failures.get(name)
        if queue:
            raise queue.pop(0)
        overrides = self.overrides.get(name)
        if overrides:
            return overrides.pop(0)
        return None

    def _cart(self, cart_id: str) -> dict[str, Any]:
        if cart_id not in self.carts:
            raise TransportError(f"cart {cart_id} not found", status=404)
        return self.carts[cart_id]

    def _cart_body(self, cart_id: str) -> bytes:
        return encode({"cart": self._totals(self._cart(cart_id))})

    # -- carts ------------------------------------------------------------
    async def create_cart(self, region_id: str, token: str | None) -> bytes:
        override = await self._hook("create_cart", region_id)
        if override is not None:
            return override
        return encode({"cart": self.seed_cart(region_id)})

    async def get_cart(self, cart_id: str, token: str | None) -> bytes:
        self.finished_updates_at_get.append(self.finished_updates)
        override = await self._hook("get_cart", cart_id)
        if override is not None:
            return override
        return self._cart_body(cart_id)

    async def update_cart(self, cart_id: str, body: dict[str, Any], token: str | None) -> bytes:
        self.in_flight_updates += 1
        self.max_in_flight_updates = max(self.max_in_flight_updates, self.in_flight_updates)
        try:
            override = await self._hook("update_cart", cart_id, json.dumps(body, sort_keys=True))
        finally:
            self.in_flight_updates -= 1
            self.finished_updates += 1

        cart = self._cart(cart_id)
        if "region_id" in body:
            cart["region_id"] = body["region_id"]
            cart["currency_code"] = CURRENCY_BY_REGION.get(body["region_id"], "eur")
        for key in ("shipping_address", "billing_address", "email"):
            if key in body:
                cart[key] = body[key]
        if override is not None:
            return override
        return self._cart_body(cart_id)

    async def add_line_item(self, cart_id: str, variant_id: str, quantity: int, token: str | None) -> bytes:
        override = await self._hook("add_line_item", cart_id, variant_id, quantity)
        cart = self._cart(cart_id)
        cart["items"].append(
            {
                "id": self._next_id("item"),
                "variant_id": variant_id,
                "product_id": f"prod_{variant_id}",
                "title": f"Produkt {variant_id}",
                "quantity": quantity,
                "unit_price": 1000,
            }
        )
        if override is not None:
            return override
        return self._cart_body(cart_id)

    async def update_line_item(self, cart_id: str, line_item_id: str, quantity: int, token: str | None) -> bytes:
        override = await self._hook("update_line_item", cart_id, line_item_id, quantity)
        for item in self._cart(cart_id)["items"]:
            if item["id"] == line_item_id:
                item["quantity"] = quantity
        if override is not None:
            return override
        return self._cart_body(cart_id)

    async def delete_line_item(self, cart_id: str, line_item_id: str, token: str | None) -> bytes:
        override = await self._hook("delete_line_item", cart_id, line_item_id)
        cart = self._cart(cart_id)
        cart["items"] = [i for i in cart["items"] if i["id"] != line_item_id]
        if override is not None:
            return override
        return encode({"id": line_item_id, "object": "line-item", "deleted": True, "parent": self._totals(cart)})

    async def associate_customer(self, cart_id: str, token: str) -> bytes:
        override = await self._hook("associate_customer", cart_id)
        cart = self._cart(cart_id)
        cart["customer_id"] = self.customer["id"]
        cart["email"] = self.customer["email"]
        if override is not None:
            return override
        return self._cart_body(cart_id)

    async def add_shipping_method(self, cart_id: str, option_id: str, token: str | None) -> bytes:
        override = await self._hook("add_shipping_method", cart_id, option_id)
        option = next(o for o in self.shipping_options if o["id"] == option_id)
        self._cart(cart_id)["shipping_total"] = option["amount"]
        if override is not None:
            return override
        return self._cart_body(cart_id)

    async def complete_cart(self, cart_id: str, token: str | None) -> bytes:
        override = await self._hook("complete_cart", cart_id)
        if override is not None:
            return override
        cart = self._totals(self._cart(cart_id))
        if self.complete_rejects:
            return encode(
                {"type": "cart", "cart": cart, "error": {"message": "Payment authorization failed"}}
            )
        del self.carts[cart_id]
        order = {
            "id": f"order_{len(self.orders) + 1}",
            "display_id": str(len(self.orders) + 1),
            "email": cart.get("email"),
            "currency_code": cart["currency_code"],
            "total": cart["total"],
            "status": "pending",
            "items": [
                {"id": i["id"], "title": i.get("title"), "quantity": i["quantity"], "unit_price": i["unit_price"]}
                for i in cart["items"]
            ],
        }
        self.orders.append(order)
        return encode({"type": "order", "order": order})

    # -- payments ---------------------------------------------------------
    async def create_payment_collection(self, cart_id: str, token: str | None) -> bytes:
        override = await self._hook("create_payment_collection", cart_id)
        cart = self._totals(self._cart(cart_id))
        cart["payment_collection"] = {
            "id": self._next_id("pay_col"),
            "amount": cart["total"],
            "currency_code": cart["currency_code"],
            "status": "not_paid",
            "payment_sessions": [],
        }
        if override is not None:
            return override
        return encode({"payment_collection": cart["payment_collection"]})

    async def create_payment_session(self, payment_collection_id: str, provider_id: str, token: str | None) -> bytes:
        override = await self._hook("create_payment_session", payment_collection_id, provider_id)
        for cart in self.carts.values():
            collection = cart.get("payment_collection")
            if collection and collection["id"] == payment_collection_id:
                collection["payment_sessions"] = [
                    {
                        "id": self._next_id("payses"),
                        "provider_id": provider_id,
                        "status": "pending",
                        "amount": collection["amount"],
                        "data": {"client_secret": "pi_secret_1"} if "stripe" in provider_id else None,
                    }
                ]
                if override is not None:
                    return override
                return encode({"payment_collection": collection})
        raise TransportError("payment collection not found", status=404)

    async def list_payment_providers(self, region_id: str, token: str | None) -> bytes:
        override = await self._hook("list_payment_providers", region_id)
        if override is not None:
            return override
        return encode({"payment_providers": self.payment_providers, "count": len(self.payment_providers)})

    async def list_shipping_options(self, cart_id: str, token: str | None) -> bytes:
        override = await self._hook("list_shipping_options", cart_id)
        if override is not None:
            return override
        return encode({"shipping_options": self.shipping_options})

    # -- auth -------------------------------------------------------------
    async def login(self, email: str, password: str) -> bytes:
        await self._hook("login", email)
        if password != self.password:
            raise TransportError("POST /auth/customer/emailpass -> HTTP 401", status=401)
        return encode({"token": self.token})

    async def get_customer(self, token: str) -> bytes:
        override = await self._hook("get_customer")
        if token != self.token:
            raise TransportError("GET /customers/me -> HTTP 401", status=401)
        if override is not None:
            return override
        return encode({"customer": self.customer})

    async def register(self, email: str, password: str) -> bytes:
        await self._hook("register", email)
        if email in self.registered:
            raise TransportError("POST /auth/customer/emailpass/register -> HTTP 401", status=401)
        self.registered.add(email)
        self.password = password
        return encode({"token": self.registration_token})

    async def create_customer(self, body: dict[str, Any], token: str) -> bytes:
        override = await self._hook("create_customer", json.dumps(body, sort_keys=True))
        if token != self.registration_token:
            raise TransportError("POST /customers -> HTTP 401", status=401)
        self.customer = {"id": self._next_id("cus"), "addresses": [], **body}
        if override is not None:
            return override
        return encode({"customer": self.customer})

    # -- address book -----------------------------------------------------
    def _authorize(self, token: str) -> None:
        if token != self.token:
            raise TransportError("customer endpoint -> HTTP 401", status=401)

    def _address(self, address_id: str) -> dict[str, Any]:
        for address in self.customer["addresses"]:
            if address["id"] == address_id:
                return address
        raise TransportError(f"address {address_id} not found", status=404)

    def _apply_defaults(self, changed: dict[str, Any]) -> None:
        #tylko jeden domyslny adres danego typu
        for flag in ("is_default_shipping", "is_default_billing"):
            if changed.get(flag):
                for address in self.customer["addresses"]:
                    if address is not changed:
                        address[flag] = False

    async def add_customer_address(self, body: dict[str, Any], token: str) -> bytes:
        override = await self._hook("add_customer_address", json.dumps(body, sort_keys=True))
        self._authorize(token)
        address = {"id": self._next_id("addr"), **body}
        self.customer["addresses"].append(address)
        self._apply_defaults(address)
        if override is not None:
            return override
        return encode({"customer": self.customer})

    async def update_customer_address(self, address_id: str, body: dict[str, Any], token: str) -> bytes:
        override = await self._hook("update_customer_address", address_id)
        self._authorize(token)
        address = self._address(address_id)
        address.update(body)
        self._apply_defaults(address)
        if override is not None:
            return override
        return encode({"customer": self.customer})

    async def delete_customer_address(self, address_id: str, token: str) -> bytes:
        override = await self._hook("delete_customer_address", address_id)
        self._authorize(token)
        address = self._address(address_id)
        self.customer["addresses"] = [a for a in self.customer["addresses"] if a is not address]
        if override is not None:
            return override
        return encode({"id": address_id, "object": "address", "deleted": True, "parent": self.customer})

    # -- orders -----------------------------------------------------------
    async def list_orders(self, token: str) -> bytes:
        override = await self._hook("list_orders")
        self._authorize(token)
        if override is not None:
            return override
        return encode({"orders": self.orders, "count": len(self.orders)})


@pytest.fixture
def fake() -> FakeCommerce:
    return FakeCommerce()


@pytest.fixture
def slots() -> MemorySlotStore:
    return MemorySlotStore()


@pytest.fixture
def container(fake: FakeCommerce, slots: MemorySlotStore) -> Container:
    return build_container(gateway=fake, slots=slots)
