# storefront/domain/schemas.py
from typing import Any, ClassVar, List, Literal

from pydantic import BaseModel, ConfigDict, Field, JsonValue

from storefront.domain.coercion import FlexBool, FlexInt, Money
from storefront.utils.money import format_price


class Entity(BaseModel):
    """Baza dla encji dekodowanych z odpowiedzi backendu."""

    #klucze pod ktorymi backend opakowuje encje, np. {"cart": {...}}
    envelope_keys: ClassVar[tuple[str, ...]] = ()
    #pola po ktorych rozpoznajemy goly obiekt bez opakowania
    identity_keys: ClassVar[tuple[str, ...]] = ("id",)

    model_config = ConfigDict(extra="ignore")


# =====================================================
# ADDRESS / CUSTOMER
# =====================================================
class Address(Entity):
    """Adres - wlasnosc klienta albo kopia osadzona w koszyku."""

    envelope_keys = ("address",)

    id: str | None = None
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    address_1: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    country_code: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=1)

    address_name: str | None = None
    company: str | None = None
    address_2: str | None = None
    province: str | None = None
    phone: str | None = None

    is_default_shipping: FlexBool = False
    is_default_billing: FlexBool = False

    def to_payload(self) -> dict[str, Any]:
        """Body wysylane do koszyka - bez id i pol ksiazki adresowej klienta."""
        return self.model_dump(
            exclude={"id", "address_name", "is_default_shipping", "is_default_billing"},
            exclude_none=True,
        )

    def to_customer_payload(self) -> dict[str, Any]:
        """Body dla ksiazki adresowej klienta, z flagami domyslnosci."""
        return self.model_dump(exclude={"id"}, exclude_none=True)


class Customer(Entity):
    envelope_keys = ("customer",)
    identity_keys = ("id", "email")

    id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    company_name: str | None = None
    default_shipping_address_id: str | None = None
    default_billing_address_id: str | None = None
    addresses: List[Address] = Field(default_factory=list)

    def default_shipping_address(self) -> Address | None:
        for address in self.addresses:
            if address.is_default_shipping or (
                address.id is not None and address.id == self.default_shipping_address_id
            ):
                return address
        return self.addresses[0] if self.addresses else None

    def default_billing_address(self) -> Address | None:
        for address in self.addresses:
            if address.is_default_billing or (
                address.id is not None and address.id == self.default_billing_address_id
            ):
                return address
        return self.addresses[0] if self.addresses else None

    def find_address(self, address_id: str) -> Address | None:
        return next((a for a in self.addresses if a.id == address_id), None)


# =====================================================
# CART
# =====================================================
class LineItem(Entity):
    id: str
    variant_id: str
    product_id: str
    quantity: FlexInt = Field(..., ge=1)
    unit_price: Money

    title: str | None = None
    thumbnail: str | None = None
    #liczone przez backend, moga nie przyjsc
    total: Money | None = None
    subtotal: Money | None = None

    @property
    def display_total(self) -> int:
        #tylko do wyswietlania, nigdy nie odsylamy na serwer
        return self.total if self.total is not None else self.unit_price * self.quantity

    @property
    def display_subtotal(self) -> int:
        return self.subtotal if self.subtotal is not None else self.unit_price * self.quantity


class Promotion(Entity):
    id: str
    code: str | None = None


class PaymentSession(Entity):
    envelope_keys = ("payment_session",)

    id: str
    provider_id: str
    status: str | None = None
    amount: Money | None = None
    data: dict[str, JsonValue] | None = None

    @property
    def client_secret(self) -> str | None:
        secret = (self.data or {}).get("client_secret")
        return secret if isinstance(secret, str) else None


class PaymentCollection(Entity):
    envelope_keys = ("payment_collection",)

    id: str
    amount: Money | None = None
    currency_code: str | None = None
    status: str | None = None
    payment_sessions: List[PaymentSession] = Field(default_factory=list)

    def session_for(self, provider_id: str) -> PaymentSession | None:
        return next((s for s in self.payment_sessions if s.provider_id == provider_id), None)


class Cart(Entity):
    """Koszyk - stan po stronie serwera, lokalnie tylko snapshot."""

    #"parent" - odpowiedz DELETE line-item: {"deleted": true, "parent": {...}}
    envelope_keys = ("cart", "parent")

    id: str
    currency_code: str
    total: Money
    subtotal: Money
    tax_total: Money = 0
    shipping_total: Money = 0
    discount_total: Money = 0

    customer_id: str | None = None
    region_id: str | None = None
    email: str | None = None

    items: List[LineItem] = Field(default_factory=list)
    shipping_address: Address | None = None
    billing_address: Address | None = None
    payment_collection: PaymentCollection | None = None
    promotions: List[Promotion] = Field(default_factory=list)

    completed_at: str | None = None
    metadata: dict[str, JsonValue] | None = None

    @property
    def item_count(self) -> int:
        return sum(i.quantity for i in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def is_associated(self) -> bool:
        return self.customer_id is not None

    def formatted_total(self) -> str:
        return format_price(self.total, self.currency_code)


# =====================================================
# CHECKOUT
# =====================================================
class ShippingOption(Entity):
    envelope_keys = ("shipping_option",)

    id: str
    name: str
    amount: Money | None = None
    price_type: str | None = None
    provider_id: str | None = None


class PaymentProvider(Entity):
    id: str
    is_enabled: FlexBool = True


class OrderItem(Entity):
    """Pozycja zamowienia, luzniejsza niz LineItem koszyka (wariant mogl zniknac)."""

    id: str
    title: str | None = None
    variant_id: str | None = None
    quantity: FlexInt = 1
    unit_price: Money | None = None
    total: Money | None = None


class Order(Entity):
    envelope_keys = ("order",)

    id: str
    display_id: FlexInt | None = None
    email: str | None = None
    currency_code: str | None = None
    total: Money | None = None
    subtotal: Money | None = None
    tax_total: Money | None = None
    shipping_total: Money | None = None
    discount_total: Money | None = None

    status: str | None = None
    payment_status: str | None = None
    fulfillment_status: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    items: List[OrderItem] = Field(default_factory=list)

    def formatted_total(self) -> str:
        return format_price(self.total or 0, self.currency_code)


# =====================================================
# INTENTS (local API)
# =====================================================
class CreateCartIn(BaseModel):
    """Schema dla tworzenia koszyka."""

    region_id: str = Field(..., min_length=1, description="ID regionu")


class ItemIn(BaseModel):
    """Schema dla dodawania wariantu do koszyka."""

    variant_id: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1, description="Ilosc (musi byc >= 1)")
    region_id: str = Field(..., min_length=1)


class ItemUpdateIn(BaseModel):
    quantity: int = Field(..., ge=1)


class AddressIn(BaseModel):
    """Adres podany recznie albo wskazany z ksiazki adresowej klienta."""

    kind: Literal["shipping", "billing"]
    address: Address | None = None
    customer_address_id: str | None = None


class ShippingMethodIn(BaseModel):
    option_id: str = Field(..., min_length=1)


class PaymentSessionIn(BaseModel):
    provider_id: str = Field(..., min_length=1)
    payment_collection_id: str | None = None


class LoginIn(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)


class RegisterIn(BaseModel):
    """Schema dla rejestracji klienta."""

    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    phone: str | None = None


class CartOut(BaseModel):
    """Schema dla odpowiedzi z operacji na koszyku."""

    ok: bool
    outcome: str
    state: str
    cart: Cart | None = None
    order: Order | None = None
    error: str | None = None
    verified: bool = True
