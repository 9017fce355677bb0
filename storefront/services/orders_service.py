# storefront/services/orders_service.py
from __future__ import annotations

from storefront.domain.errors import PreconditionError, TransportError
from storefront.domain.schemas import Order
from storefront.services.commerce_base import CommerceGateway
from storefront.services.credential_store import CredentialStore
from storefront.services.interpreter import NeedsRefetch, interpret_many
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class OrdersService:
    """Historia zamowien zalogowanego klienta."""

    def __init__(self, gateway: CommerceGateway, credentials: CredentialStore):
        self.gateway = gateway
        self.credentials = credentials

    async def orders(self) -> list[Order]:
        token = self.credentials.token
        if not token:
            raise PreconditionError("Brak tokenu klienta")

        orders = interpret_many(await self.gateway.list_orders(token), Order, "orders")
        if isinstance(orders, NeedsRefetch):
            raise TransportError("GET /orders returned no readable list")

        logger.info(f"{len(orders)} orders fetched")
        return orders
