# storefront/services/association.py
from __future__ import annotations

import asyncio
import dataclasses
from typing import Any

from storefront.domain.errors import TransportError
from storefront.domain.results import AssociationResult, Outcome
from storefront.domain.schemas import Address, Cart, Customer
from storefront.services.commerce_base import CommerceGateway
from storefront.services.credential_store import CredentialStore
from storefront.services.interpreter import interpret
from storefront.services.snapshot_store import CartSnapshotStore
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def plan_address_submissions(customer: Customer) -> list[tuple[str, dict[str, Any]]]:
    """Domyslne adresy klienta -> lista (etykieta, body) do wyslania na koszyk.

    Ten sam adres jako shipping i billing to jedna operacja z oboma polami.
    """
    shipping = customer.default_shipping_address()
    billing = customer.default_billing_address()

    if shipping is not None and billing is not None and _same_address(shipping, billing):
        payload = shipping.to_payload()
        return [("shipping+billing", {"shipping_address": payload, "billing_address": payload})]

    plan: list[tuple[str, dict[str, Any]]] = []
    if shipping is not None:
        plan.append(("shipping", {"shipping_address": shipping.to_payload()}))
    if billing is not None:
        plan.append(("billing", {"billing_address": billing.to_payload()}))
    return plan


def _same_address(a: Address, b: Address) -> bool:
    if a.id is not None and b.id is not None:
        return a.id == b.id
    return a == b


class AssociationWorkflow:
    """
    Powiazanie anonimowego koszyka z klientem (fan-out/fan-in)
    1. POST /carts/{id}/customer
    2. domyslne adresy klienta (shipping, billing; ten sam adres liczony raz)
    3. wysylka adresow rownolegle, licznik zakonczonych operacji
    4. po zakonczeniu WSZYSTKICH operacji jeden refetch koszyka
    Wywolujacy (orchestrator) serializuje uruchomienia swoim lockiem.
    """

    def __init__(
        self,
        gateway: CommerceGateway,
        snapshot: CartSnapshotStore,
        credentials: CredentialStore,
    ):
        self.gateway = gateway
        self.snapshot = snapshot
        self.credentials = credentials
        self._completed: dict[str, AssociationResult] = {}
        #zwiekszane przy logout, wyniki starszych przebiegow sa porzucane
        self._generation = 0

    def reset(self) -> None:
        logger.info(f"Association state reset ({len(self._completed)} remembered carts dropped)")
        self._completed.clear()
        self._generation += 1

    def was_associated(self, cart_id: str) -> bool:
        return cart_id in self._completed

    async def run(self, cart_id: str) -> AssociationResult:
        previous = self._completed.get(cart_id)
        if previous is not None:
            logger.info(f"Cart {cart_id} already associated, skipping")
            return dataclasses.replace(previous, outcome=Outcome.ALREADY_ASSOCIATED, submitted=(), refetched=False)

        token = self.credentials.token
        if not token:
            logger.info("No auth token found, cannot associate cart with customer")
            return AssociationResult(ok=False, outcome=Outcome.PRECONDITION_FAILED, error="Brak tokenu klienta")

        generation = self._generation
        result = await self._run(cart_id, token)

        if generation != self._generation:
            logger.info(f"Association of cart {cart_id} finished after logout, result dropped")
        elif result.outcome in (Outcome.ASSOCIATED, Outcome.NO_ADDRESSES):
            self._completed[cart_id] = result
        return result

    async def _run(self, cart_id: str, token: str) -> AssociationResult:
        # 1. powiazanie koszyka z klientem
        try:
            raw = await self.gateway.associate_customer(cart_id, token)
        except TransportError as e:
            logger.error(f"Cart customer association error: {e}")
            return AssociationResult(ok=False, outcome=Outcome.TRANSPORT_ERROR, error=str(e))

        cart = interpret(raw, Cart)
        if isinstance(cart, Cart):
            await self.snapshot.replace(cart)
            logger.info(f"Cart {cart_id} associated with customer {cart.customer_id}")

        # 2. adresy klienta
        customer = await self._customer(token)
        if customer is None:
            return AssociationResult(
                ok=False, outcome=Outcome.TRANSPORT_ERROR, error="Nie udalo sie pobrac profilu klienta"
            )

        plan = plan_address_submissions(customer)
        total_operations = len(plan)
        if total_operations == 0:
            logger.info(f"Customer {customer.id} has no addresses, nothing to apply to cart {cart_id}")
            return AssociationResult(
                ok=False, outcome=Outcome.NO_ADDRESSES, error="Klient nie ma zapisanych adresow"
            )

        # 3. fan-out
        completed = 0
        has_error = False

        async def submit(label: str, body: dict[str, Any]) -> None:
            nonlocal completed, has_error
            try:
                await self.gateway.update_cart(cart_id, body, token)
                logger.info(f"{label} address added to cart {cart_id}")
            except TransportError as e:
                has_error = True
                logger.error(f"Failed to add {label} address to cart {cart_id}: {e}")
            finally:
                completed += 1
                logger.info(f"Address operations for cart {cart_id}: {completed}/{total_operations}")

        # fan-in: gather czeka na wszystkie, submit nie rzuca wyjatkow
        await asyncio.gather(*(submit(label, body) for label, body in plan))

        # 4. jeden refetch po wszystkich operacjach
        refetched = False
        try:
            fresh = interpret(await self.gateway.get_cart(cart_id, token), Cart)
            if isinstance(fresh, Cart):
                await self.snapshot.replace(fresh)
                refetched = True
            else:
                logger.warning(f"Refetch of cart {cart_id} after association returned no cart")
        except TransportError as e:
            logger.error(f"Refetch of cart {cart_id} after association failed: {e}")

        has_error = has_error or not refetched
        return AssociationResult(
            ok=not has_error,
            outcome=Outcome.ASSOCIATED,
            total_operations=total_operations,
            submitted=tuple(label for label, _ in plan),
            refetched=refetched,
            error="Nie wszystkie adresy zostaly zastosowane" if has_error else None,
        )

    async def _customer(self, token: str) -> Customer | None:
        customer = self.credentials.customer
        if customer is not None and self.credentials.verified:
            return customer

        try:
            fetched = interpret(await self.gateway.get_customer(token), Customer)
        except TransportError as e:
            logger.error(f"Failed to fetch customer profile: {e}")
            return customer

        if isinstance(fetched, Customer):
            if self.credentials.token == token:
                await self.credentials.set_customer(fetched)
            return fetched
        return customer
