# storefront/services/cart_service.py
from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable

from storefront.domain.errors import PreconditionError, TransportError
from storefront.domain.results import AssociationResult, CartResult, Outcome
from storefront.domain.schemas import Address, Cart, Order
from storefront.services.association import AssociationWorkflow
from storefront.services.commerce_base import CommerceGateway
from storefront.services.credential_store import CredentialStore
from storefront.services.events import CustomerAuthenticated, CustomerLoggedOut, EventBus
from storefront.services.interpreter import NeedsRefetch, interpret, parse_body
from storefront.services.snapshot_store import CartSnapshotStore
from storefront.utils.logging import get_logger
from storefront.utils.retry import region_update_retry
from storefront.utils.settings import REGION_UPDATE_ATTEMPTS

logger = get_logger(__name__)

ADDRESS_KINDS = ("shipping", "billing")


class CartState(str, Enum):
    UNINITIALIZED = "UNINITIALIZED"
    CREATING = "CREATING"
    ACTIVE = "ACTIVE"
    ASSOCIATING = "ASSOCIATING"
    MUTATING = "MUTATING"
    ADDRESS_EDITING = "ADDRESS_EDITING"
    SHIPPING_SELECTING = "SHIPPING_SELECTING"
    PAYMENT_SELECTING = "PAYMENT_SELECTING"
    COMPLETING = "COMPLETING"
    COMPLETED = "COMPLETED"


class CartOrchestrator:
    """
    Maszyna stanow koszyka po stronie klienta
    commands (create, line items, adresy, shipping, payment, complete) ida do backendu,
    odpowiedz przez interpreter, wynik zawsze wholesale replace w snapshot store

    -kazda operacja: ACTIVE -> stan przejsciowy -> ACTIVE (albo UNINITIALIZED/COMPLETED)
    -zadna operacja nie rzuca wyjatku, wynik to CartResult
    -jeden lock: dwie mutacje tego samego koszyka nie przeplataja sie do commitu
    -token i id koszyka czytane na poczatku kazdej operacji
    """

    def __init__(
        self,
        gateway: CommerceGateway,
        snapshot: CartSnapshotStore,
        credentials: CredentialStore,
        association: AssociationWorkflow | None = None,
        events: EventBus | None = None,
        region_update_attempts: int = REGION_UPDATE_ATTEMPTS,
    ):
        self.gateway = gateway
        self.snapshot = snapshot
        self.credentials = credentials
        self.association = association or AssociationWorkflow(gateway, snapshot, credentials)
        self.region_update_attempts = region_update_attempts

        self.state = CartState.ACTIVE if snapshot.cart_id else CartState.UNINITIALIZED
        self.error_message: str | None = None

        self._lock = asyncio.Lock()
        self._completed = False
        self._background: set[asyncio.Task] = set()

        if events is not None:
            events.subscribe(CustomerAuthenticated, self.handle_user_login)
            events.subscribe(CustomerLoggedOut, self.handle_user_logout)

    # =====================================================
    # QUERY
    # =====================================================
    @property
    def cart(self) -> Cart | None:
        return self.snapshot.get()

    def _resting_state(self) -> CartState:
        if self.snapshot.cart_id:
            return CartState.ACTIVE
        return CartState.COMPLETED if self._completed else CartState.UNINITIALIZED

    def _require_cart_id(self) -> str:
        cart_id = self.snapshot.cart_id
        if not cart_id:
            raise PreconditionError("Brak aktywnego koszyka")
        return cart_id

    # =====================================================
    # INFRA
    # =====================================================
    async def _run(
        self,
        state: CartState | None,
        name: str,
        body: Callable[[], Awaitable[CartResult]],
    ) -> CartResult:
        async with self._lock:
            if state is not None:
                self.state = state
            try:
                result = await body()
            except PreconditionError as e:
                logger.info(f"{name} rejected: {e}")
                result = CartResult.failure(Outcome.PRECONDITION_FAILED, str(e), self.snapshot.get())
            except TransportError as e:
                logger.error(f"{name} failed: {e}")
                result = CartResult.failure(Outcome.TRANSPORT_ERROR, f"{name}: {e}", self.snapshot.get())
            finally:
                self.state = self._resting_state()

        self.error_message = result.error
        return result

    def _reject(self, message: str) -> CartResult:
        #walidacja bez wywolania sieciowego
        logger.info(f"Rejected: {message}")
        result = CartResult.failure(Outcome.PRECONDITION_FAILED, message, self.snapshot.get())
        self.error_message = message
        return result

    async def _refetch(self, cart_id: str, token: str | None) -> Cart:
        fetched = interpret(await self.gateway.get_cart(cart_id, token), Cart)
        if isinstance(fetched, NeedsRefetch):
            raise TransportError(f"GET /carts/{cart_id} returned no readable cart")
        return fetched

    async def _commit(self, raw: Any, cart_id: str, token: str | None) -> tuple[Cart, bool]:
        """Odpowiedz mutacji -> koszyk. Gdy body nie jest koszykiem - refetch."""
        cart = interpret(raw, Cart)
        refetched = False
        if isinstance(cart, NeedsRefetch):
            cart = await self._refetch(cart_id, token)
            refetched = True
        await self.snapshot.replace(cart)
        return cart, refetched

    def _spawn(self, coro: Awaitable[Any]) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background_done)
        return task

    def _background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Background cart task failed: {task.exception()}")

    async def drain(self) -> None:
        """Czeka na zadania w tle (powiazanie klienta po dodaniu produktu)."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def _should_associate(self, cart: Cart | None) -> bool:
        return (
            cart is not None
            and cart.customer_id is None
            and self.credentials.token is not None
            and not self.association.was_associated(cart.id)
        )

    # =====================================================
    # COMMANDS - cart lifecycle
    # =====================================================
    async def create_cart(self, region_id: str) -> CartResult:
        if not region_id:
            return self._reject("Region jest wymagany do utworzenia koszyka")

        result = await self._run(CartState.CREATING, "create cart", lambda: self._create_cart(region_id))

        if result.ok and self._should_associate(result.cart):
            association = await self.associate_customer()
            logger.info(f"Customer association after cart creation: {association.outcome.value}")
            #koszyk utworzony niezaleznie od wyniku powiazania
            return CartResult.success(Outcome.CREATED, self.snapshot.get())
        return result

    async def _create_cart(self, region_id: str) -> CartResult:
        token = self.credentials.token
        cart = interpret(await self.gateway.create_cart(region_id, token), Cart)
        if isinstance(cart, NeedsRefetch):
            #bez id nie ma czego pobrac
            raise TransportError("POST /carts returned no readable cart")

        await self.snapshot.replace(cart)
        self._completed = False
        logger.info(f"Cart created: {cart.id} for region {region_id}, currency {cart.currency_code}")
        return CartResult.success(Outcome.CREATED, cart)

    async def ensure_cart_for_region(self, region_id: str) -> CartResult:
        if not region_id:
            return self._reject("Region jest wymagany")

        current = self.snapshot.get()
        if current is None:
            logger.info(f"Creating cart for region {region_id}")
            return await self.create_cart(region_id)

        if current.region_id == region_id:
            return CartResult.success(Outcome.UNCHANGED, current)

        logger.info(f"Updating region of cart {current.id}: {current.region_id} -> {region_id}")
        result = await self._run(
            CartState.MUTATING, "update cart region", lambda: self._update_region(current.id, region_id)
        )
        if result.ok or result.outcome == Outcome.PRECONDITION_FAILED:
            return result

        # discard-and-recreate: pozycje starego koszyka przepadaja
        logger.warning(
            f"Region update of cart {current.id} failed ({result.error}); "
            f"discarding cart with {current.item_count} items and recreating for region {region_id}"
        )
        async with self._lock:
            if self.snapshot.cart_id == current.id:
                await self.snapshot.clear()

        created = await self.create_cart(region_id)
        if not created.ok:
            return created
        logger.warning(f"Cart {current.id} replaced by new cart {created.cart.id} (RECREATED)")
        return CartResult.success(Outcome.RECREATED, created.cart)

    async def _update_region(self, cart_id: str, region_id: str) -> CartResult:
        token = self.credentials.token

        @region_update_retry(self.region_update_attempts)
        async def attempt() -> Any:
            return await self.gateway.update_cart(cart_id, {"region_id": region_id}, token)

        cart, _ = await self._commit(await attempt(), cart_id, token)
        logger.info(f"Cart {cart.id} region updated, currency {cart.currency_code}")
        return CartResult.success(Outcome.UPDATED, cart)

    async def fetch_cart(self, cart_id: str) -> CartResult:
        async def body() -> CartResult:
            cart = await self._refetch(cart_id, self.credentials.token)
            await self.snapshot.replace(cart)
            return CartResult.success(Outcome.REFETCHED, cart)

        return await self._run(None, "fetch cart", body)

    async def refresh(self) -> CartResult:
        cart_id = self.snapshot.cart_id
        if not cart_id:
            return self._reject("Brak koszyka do odswiezenia")
        return await self.fetch_cart(cart_id)

    async def restore(self) -> CartResult:
        """Start procesu: odczyt slotow i weryfikacja koszyka na serwerze."""
        await self.credentials.restore()
        cart = await self.snapshot.restore()
        self.state = self._resting_state()
        if cart is None:
            return CartResult.failure(Outcome.PRECONDITION_FAILED, "Brak zapisanego koszyka")

        async def verify() -> CartResult:
            try:
                fresh = await self._refetch(cart.id, self.credentials.token)
            except TransportError as e:
                if e.not_found:
                    logger.warning(f"Stored cart {cart.id} no longer exists, clearing")
                    await self.snapshot.clear()
                raise
            await self.snapshot.replace(fresh)
            return CartResult.success(Outcome.REFETCHED, fresh)

        result = await self._run(None, "verify restored cart", verify)
        if result.ok and self._should_associate(result.cart):
            self._spawn(self.associate_customer())
        return result

    async def clear(self) -> None:
        async with self._lock:
            await self.snapshot.clear()
            self.state = self._resting_state()

    # =====================================================
    # COMMANDS - line items
    # =====================================================
    async def add_line_item(self, variant_id: str, quantity: int, region_id: str) -> CartResult:
        if not variant_id:
            return self._reject("Wariant jest wymagany")
        if quantity < 1:
            return self._reject("Ilosc musi byc wieksza niz 0")

        if self.snapshot.cart_id is None:
            logger.info(f"No cart exists, creating cart for region {region_id} before adding item")
            ensured = await self.ensure_cart_for_region(region_id)
            if not ensured.ok:
                return ensured

        # jedna proba po utworzeniu koszyka, bez rekurencji
        result = await self._run(
            CartState.MUTATING, "add line item", lambda: self._add_line_item(variant_id, quantity)
        )

        if result.ok and self._should_associate(result.cart):
            # fire-and-forget, wynik dodania nie zalezy od powiazania
            self._spawn(self.associate_customer())
        return result

    async def _add_line_item(self, variant_id: str, quantity: int) -> CartResult:
        cart_id = self._require_cart_id()
        token = self.credentials.token
        raw = await self.gateway.add_line_item(cart_id, variant_id, quantity, token)
        cart, _ = await self._commit(raw, cart_id, token)
        logger.info(f"Line item {variant_id} x{quantity} added to cart {cart.id}, now {cart.item_count} items")
        return CartResult.success(Outcome.UPDATED, cart)

    async def update_line_item(self, line_item_id: str, quantity: int) -> CartResult:
        if quantity < 1:
            return self._reject("Ilosc musi byc wieksza niz 0")

        async def body() -> CartResult:
            cart_id = self._require_cart_id()
            token = self.credentials.token
            raw = await self.gateway.update_line_item(cart_id, line_item_id, quantity, token)
            cart, _ = await self._commit(raw, cart_id, token)
            return CartResult.success(Outcome.UPDATED, cart)

        return await self._run(CartState.MUTATING, "update line item", body)

    async def remove_line_item(self, line_item_id: str) -> CartResult:
        async def body() -> CartResult:
            cart_id = self._require_cart_id()
            token = self.credentials.token
            raw = await self.gateway.delete_line_item(cart_id, line_item_id, token)
            cart, refetched = await self._commit(raw, cart_id, token)
            logger.info(f"Line item {line_item_id} removed from cart {cart_id} (refetched={refetched})")
            return CartResult.success(Outcome.REFETCHED if refetched else Outcome.UPDATED, cart)

        return await self._run(CartState.MUTATING, "remove line item", body)

    # =====================================================
    # COMMANDS - addresses
    # =====================================================
    async def set_address(self, kind: str, address: Address) -> CartResult:
        if kind not in ADDRESS_KINDS:
            return self._reject(f"Nieznany typ adresu: {kind}")

        async def body() -> CartResult:
            cart_id = self._require_cart_id()
            token = self.credentials.token
            await self.gateway.update_cart(cart_id, {f"{kind}_address": address.to_payload()}, token)
            # ksztalt odpowiedzi tego endpointu jest niestabilny - zawsze refetch
            cart = await self._refetch(cart_id, token)
            await self.snapshot.replace(cart)
            logger.info(f"{kind} address set on cart {cart_id}")
            return CartResult.success(Outcome.REFETCHED, cart)

        return await self._run(CartState.ADDRESS_EDITING, f"set {kind} address", body)

    async def set_address_from_customer(self, kind: str, address_id: str) -> CartResult:
        customer = self.credentials.customer
        if customer is None:
            return self._reject("Brak zalogowanego klienta")
        address = customer.find_address(address_id)
        if address is None:
            return self._reject(f"Adres {address_id} nie nalezy do klienta")
        return await self.set_address(kind, address)

    async def copy_shipping_to_billing(self) -> CartResult:
        cart = self.snapshot.get()
        if cart is None or cart.shipping_address is None:
            return self._reject("Brak adresu dostawy do skopiowania")
        return await self.set_address("billing", cart.shipping_address)

    # =====================================================
    # COMMANDS - customer association
    # =====================================================
    async def associate_customer(self) -> AssociationResult:
        async with self._lock:
            cart_id = self.snapshot.cart_id
            if not cart_id:
                return AssociationResult(ok=False, outcome=Outcome.PRECONDITION_FAILED, error="Brak koszyka")
            self.state = CartState.ASSOCIATING
            try:
                result = await self.association.run(cart_id)
            finally:
                self.state = self._resting_state()

        logger.info(
            f"Customer association for cart {cart_id}: ok={result.ok} outcome={result.outcome.value} "
            f"operations={result.total_operations}"
        )
        return result

    async def handle_user_login(self, event: CustomerAuthenticated) -> None:
        cart = self.snapshot.get()
        if cart is not None and cart.customer_id is None:
            logger.info(f"User {event.customer.id} logged in, associating cart {cart.id}")
            await self.associate_customer()

    async def handle_user_logout(self, event: CustomerLoggedOut) -> None:
        # koszyk zostaje, nie da sie go odlaczyc od klienta; w locie tylko porzucamy wyniki
        self.association.reset()
        logger.info(f"User {event.customer_id} logged out, cart kept locally")

    # =====================================================
    # COMMANDS - checkout
    # =====================================================
    async def select_shipping_option(self, option_id: str) -> CartResult:
        if not option_id:
            return self._reject("Opcja dostawy jest wymagana")

        async def body() -> CartResult:
            cart_id = self._require_cart_id()
            token = self.credentials.token
            raw = await self.gateway.add_shipping_method(cart_id, option_id, token)
            cart, refetched = await self._commit(raw, cart_id, token)
            logger.info(f"Shipping option {option_id} selected, shipping total {cart.shipping_total}")
            return CartResult.success(Outcome.REFETCHED if refetched else Outcome.UPDATED, cart)

        return await self._run(CartState.SHIPPING_SELECTING, "select shipping option", body)

    async def create_payment_collection(self) -> CartResult:
        async def body() -> CartResult:
            cart_id = self._require_cart_id()
            current = self.snapshot.get()
            if current is not None and current.payment_collection is not None:
                return CartResult.success(Outcome.UNCHANGED, current)
            token = self.credentials.token
            await self.gateway.create_payment_collection(cart_id, token)
            cart = await self._refetch(cart_id, token)
            await self.snapshot.replace(cart)
            return CartResult.success(Outcome.REFETCHED, cart)

        return await self._run(CartState.PAYMENT_SELECTING, "create payment collection", body)

    async def select_payment_provider(self, payment_collection_id: str | None, provider_id: str) -> CartResult:
        if not payment_collection_id:
            return self._reject("Brak payment collection dla koszyka")
        if not provider_id:
            return self._reject("Dostawca platnosci jest wymagany")

        async def body() -> CartResult:
            cart_id = self._require_cart_id()
            token = self.credentials.token
            await self.gateway.create_payment_session(payment_collection_id, provider_id, token)
            cart = await self._refetch(cart_id, token)
            await self.snapshot.replace(cart)
            logger.info(f"Payment provider {provider_id} selected for collection {payment_collection_id}")
            return CartResult.success(Outcome.REFETCHED, cart)

        return await self._run(CartState.PAYMENT_SELECTING, "select payment provider", body)

    async def complete_cart(self) -> CartResult:
        async def body() -> CartResult:
            cart_id = self._require_cart_id()
            token = self.credentials.token
            raw = await self.gateway.complete_cart(cart_id, token)

            payload = parse_body(raw)
            if isinstance(payload, dict) and payload.get("type") == "cart":
                # backend odrzucil zamkniecie (np. platnosc nieautoryzowana), koszyk dalej aktywny
                cart = interpret(payload, Cart)
                if isinstance(cart, Cart):
                    await self.snapshot.replace(cart)
                error = payload.get("error")
                message = error.get("message") if isinstance(error, dict) else None
                logger.warning(f"Completion of cart {cart_id} rejected: {message}")
                return CartResult.failure(
                    Outcome.REJECTED, message or "Nie udalo sie zlozyc zamowienia", self.snapshot.get()
                )

            order = interpret(payload, Order)
            await self.snapshot.clear()
            self._completed = True
            order_id = order.id if isinstance(order, Order) else None
            logger.info(f"Cart {cart_id} completed, order {order_id}")
            return CartResult.success(Outcome.COMPLETED, order=order if isinstance(order, Order) else None)

        return await self._run(CartState.COMPLETING, "complete cart", body)
