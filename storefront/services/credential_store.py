# storefront/services/credential_store.py
from __future__ import annotations

import asyncio

from pydantic import ValidationError

from storefront.domain.schemas import Customer
from storefront.services.slot_store import SlotStore, delete_slot, read_slot, write_slot
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

TOKEN_SLOT = "auth_token"
CUSTOMER_SLOT = "customer"


class CredentialStore:
    """Token i profil zalogowanego klienta, odczytywane na poczatku kazdej operacji."""

    def __init__(self, slots: SlotStore):
        self.slots = slots
        self._token: str | None = None
        self._customer: Customer | None = None
        self._verified = True
        self._write_lock = asyncio.Lock()

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def customer(self) -> Customer | None:
        return self._customer.model_copy(deep=True) if self._customer else None

    @property
    def verified(self) -> bool:
        return self._verified

    @property
    def is_authenticated(self) -> bool:
        return self._token is not None

    async def set_token(self, token: str) -> None:
        self._token = token
        await self._save_token()

    async def set_customer(self, customer: Customer) -> None:
        self._customer = customer.model_copy(deep=True)
        self._verified = True
        await self._save_customer()

    async def clear(self) -> None:
        self._token = None
        self._customer = None
        self._verified = True
        logger.info("Credentials cleared")
        await self._save_token()
        await self._save_customer()

    async def restore(self) -> None:
        self._token = await read_slot(self.slots, TOKEN_SLOT) or None

        raw = await read_slot(self.slots, CUSTOMER_SLOT)
        self._customer = None
        if raw is not None:
            try:
                self._customer = Customer.model_validate_json(raw)
            except ValidationError as e:
                logger.warning(f"Discarding unreadable customer profile: {e.error_count()} errors")
                await delete_slot(self.slots, CUSTOMER_SLOT)

        #profil z dysku nie jest pewny dopoki nie odswiezymy go z serwera
        self._verified = self._customer is None
        logger.info(
            f"Credentials restored: token={'yes' if self._token else 'no'}, "
            f"customer={self._customer.id if self._customer else None}"
        )

    # -- persistence: blad zapisu zostawia wartosci w pamieci --------------
    async def _save_token(self) -> bool:
        async with self._write_lock:
            if self._token is None:
                return await delete_slot(self.slots, TOKEN_SLOT)
            return await write_slot(self.slots, TOKEN_SLOT, self._token)

    async def _save_customer(self) -> bool:
        async with self._write_lock:
            if self._customer is None:
                return await delete_slot(self.slots, CUSTOMER_SLOT)
            return await write_slot(self.slots, CUSTOMER_SLOT, self._customer.model_dump_json())
