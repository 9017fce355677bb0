from __future__ import annotations

import asyncio

import pytest

from storefront.bootstrap import Container
from storefront.domain.errors import PreconditionError, TransportError
from storefront.domain.schemas import Address

from tests.conftest import SHIPPING_ADDRESS, FakeCommerce, encode

GDANSK = {
    "first_name": "Anna",
    "last_name": "Nowak",
    "address_name": "Dom",
    "address_1": "Dluga 5",
    "city": "Gdansk",
    "country_code": "pl",
    "postal_code": "80-001",
    "is_default_shipping": True,
}


def _login(container: Container) -> None:
    asyncio.run(container.auth.login("anna@example.com", "secret"))


# =====================================================
# registration
# =====================================================
def test_register_creates_profile_and_logs_in(container: Container, fake: FakeCommerce) -> None:
    customer = asyncio.run(container.auth.register("jan@example.com", "haslo123", "Jan", "Kowalski", "+48600100200"))

    assert customer.email == "jan@example.com"
    assert customer.first_name == "Jan"
    assert customer.phone == "+48600100200"
    assert [c[0] for c in fake.calls] == ["register", "create_customer", "login", "get_customer"]
    assert container.credentials.token == "tok_1"
    assert container.credentials.customer.id == customer.id


def test_register_existing_email(container: Container, fake: FakeCommerce) -> None:
    with pytest.raises(TransportError) as exc:
        asyncio.run(container.auth.register("anna@example.com", "secret", "Anna", "Nowak"))

    assert exc.value.status == 401
    assert fake.count("create_customer") == 0
    assert not container.credentials.is_authenticated


def test_register_requires_names(container: Container, fake: FakeCommerce) -> None:
    with pytest.raises(PreconditionError):
        asyncio.run(container.auth.register("jan@example.com", "haslo123", "", "Kowalski"))
    assert fake.calls == []


def test_register_stops_when_profile_creation_fails(container: Container, fake: FakeCommerce) -> None:
    fake.fail("create_customer", status=400)

    with pytest.raises(TransportError):
        asyncio.run(container.auth.register("jan@example.com", "haslo123", "Jan", "Kowalski"))

    assert fake.count("login") == 0
    assert not container.credentials.is_authenticated


def test_register_response_without_token(container: Container, fake: FakeCommerce) -> None:
    async def no_token(email: str, password: str) -> bytes:
        return encode({"success": True})

    fake.register = no_token

    with pytest.raises(TransportError):
        asyncio.run(container.auth.register("jan@example.com", "haslo123", "Jan", "Kowalski"))
    assert fake.count("create_customer") == 0


# =====================================================
# address book
# =====================================================
def test_address_book_requires_login(container: Container, fake: FakeCommerce) -> None:
    address = Address.model_validate(GDANSK)

    with pytest.raises(PreconditionError):
        asyncio.run(container.auth.add_address(address))
    with pytest.raises(PreconditionError):
        asyncio.run(container.auth.delete_address("addr_ship"))
    assert fake.calls == []


def test_add_address_updates_stored_profile(container: Container, fake: FakeCommerce) -> None:
    _login(container)

    customer = asyncio.run(container.auth.add_address(Address.model_validate(GDANSK)))

    assert len(customer.addresses) == 3
    assert customer.default_shipping_address().city == "Gdansk"
    stored = container.credentials.customer
    assert [a.city for a in stored.addresses] == ["Warszawa", "Krakow", "Gdansk"]
    assert stored.find_address("addr_ship").is_default_shipping is False
    assert container.credentials.verified
    # profil z odpowiedzi, bez dodatkowego GET
    assert fake.count("get_customer") == 1


def test_address_payload_keeps_book_fields(container: Container, fake: FakeCommerce) -> None:
    _login(container)

    asyncio.run(container.auth.add_address(Address.model_validate(GDANSK)))

    added = fake.customer["addresses"][-1]
    assert added["address_name"] == "Dom"
    assert added["is_default_shipping"] is True
    assert added["id"].startswith("addr_")


def test_update_address(container: Container, fake: FakeCommerce) -> None:
    _login(container)
    changed = Address.model_validate({**SHIPPING_ADDRESS, "city": "Lodz", "postal_code": "90-001"})

    customer = asyncio.run(container.auth.update_address("addr_ship", changed))

    assert customer.find_address("addr_ship").city == "Lodz"
    assert container.credentials.customer.find_address("addr_ship").city == "Lodz"


def test_update_missing_address(container: Container, fake: FakeCommerce) -> None:
    _login(container)

    with pytest.raises(TransportError) as exc:
        asyncio.run(container.auth.update_address("addr_missing", Address.model_validate(GDANSK)))

    assert exc.value.not_found
    assert len(container.credentials.customer.addresses) == 2


def test_delete_address_reads_parent_customer(container: Container, fake: FakeCommerce) -> None:
    _login(container)

    customer = asyncio.run(container.auth.delete_address("addr_bill"))

    assert [a.id for a in customer.addresses] == ["addr_ship"]
    assert container.credentials.customer.find_address("addr_bill") is None
    assert fake.count("get_customer") == 1


def test_address_change_without_customer_body_refreshes_profile(container: Container, fake: FakeCommerce) -> None:
    _login(container)
    fake.override("add_customer_address", encode({"success": True}))

    customer = asyncio.run(container.auth.add_address(Address.model_validate(GDANSK)))

    assert len(customer.addresses) == 3
    assert fake.count("get_customer") == 2
    assert len(container.credentials.customer.addresses) == 3


def test_new_default_address_used_by_next_association(container: Container, fake: FakeCommerce) -> None:
    _login(container)
    asyncio.run(container.auth.add_address(Address.model_validate(GDANSK)))

    result = asyncio.run(container.cart.create_cart("reg_eu"))

    assert result.ok
    assert result.cart.customer_id == "cus_1"
    assert result.cart.shipping_address.city == "Gdansk"
    assert result.cart.billing_address.city == "Krakow"


# =====================================================
# orders
# =====================================================
def test_orders_require_login(container: Container, fake: FakeCommerce) -> None:
    with pytest.raises(PreconditionError):
        asyncio.run(container.orders.orders())
    assert fake.calls == []


def test_orders_after_checkout(container: Container, fake: FakeCommerce) -> None:
    _login(container)

    async def scenario():
        await container.cart.add_line_item("var_1", 2, "reg_eu")
        await container.cart.complete_cart()
        return await container.orders.orders()

    orders = asyncio.run(scenario())

    assert [o.id for o in orders] == ["order_1"]
    assert orders[0].total == 2000
    assert orders[0].items[0].quantity == 2
    assert orders[0].formatted_total() == "EUR 20.00"


def test_orders_skip_undecodable_entries(container: Container, fake: FakeCommerce) -> None:
    _login(container)
    fake.override(
        "list_orders",
        encode({"data": {"orders": [{"id": "order_7", "total": "12.50", "status": "completed"}, {"total": 1}]}}),
    )

    orders = asyncio.run(container.orders.orders())

    assert [(o.id, o.total, o.status) for o in orders] == [("order_7", 1250, "completed")]


def test_orders_unreadable_list(container: Container, fake: FakeCommerce) -> None:
    _login(container)
    fake.override("list_orders", encode({"message": "unexpected"}))

    with pytest.raises(TransportError):
        asyncio.run(container.orders.orders())
