# storefront/services/checkout_service.py
from __future__ import annotations

from storefront.domain.errors import PreconditionError, TransportError
from storefront.domain.schemas import PaymentProvider, ShippingOption
from storefront.services.commerce_base import CommerceGateway
from storefront.services.credential_store import CredentialStore
from storefront.services.interpreter import NeedsRefetch, interpret_many
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class CheckoutService:
    """Listy opcji do wyboru w checkout (tylko odczyt, bez zmiany koszyka)."""

    def __init__(self, gateway: CommerceGateway, credentials: CredentialStore):
        self.gateway = gateway
        self.credentials = credentials

    async def shipping_options(self, cart_id: str | None) -> list[ShippingOption]:
        if not cart_id:
            raise PreconditionError("Brak aktywnego koszyka")

        raw = await self.gateway.list_shipping_options(cart_id, self.credentials.token)
        options = interpret_many(raw, ShippingOption, "shipping_options")
        if isinstance(options, NeedsRefetch):
            raise TransportError("GET /shipping-options returned no readable list")

        logger.info(f"{len(options)} shipping options for cart {cart_id}")
        return options

    async def payment_providers(self, region_id: str | None) -> list[PaymentProvider]:
        if not region_id:
            raise PreconditionError("Region jest wymagany")

        raw = await self.gateway.list_payment_providers(region_id, self.credentials.token)
        providers = interpret_many(raw, PaymentProvider, "payment_providers")
        if isinstance(providers, NeedsRefetch):
            raise TransportError("GET /payment-providers returned no readable list")

        enabled = [p for p in providers if p.is_enabled]
        logger.info(f"{len(enabled)}/{len(providers)} payment providers enabled for region {region_id}")
        return enabled
