# storefront/services/snapshot_store.py
from __future__ import annotations

import asyncio
from typing import Callable

from pydantic import ValidationError

from storefront.domain.schemas import Cart
from storefront.services.slot_store import SlotStore, delete_slot, read_slot, write_slot
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

CART_SLOT = "cart_snapshot"

Listener = Callable[[Cart | None], None]


class CartSnapshotStore:
    """
    Jedyny wlasciciel lokalnej kopii koszyka
    -replace zawsze nadpisuje calosc, nigdy nie laczy pol
    -kazdy commit (replace/clear) od razu zapisywany do slotu, poza petla zdarzen
    -kopia w pamieci jest wiazaca: blad zapisu jest logowany, kolejny commit zapisuje calosc
    -subskrybenci powiadamiani tylko przy replace/clear
    -po restore koszyk jest niezweryfikowany dopoki nie przyjdzie odpowiedz z serwera
    """

    def __init__(self, slots: SlotStore, key: str = CART_SLOT):
        self.slots = slots
        self.key = key
        self._cart: Cart | None = None
        self._verified = True
        self._persisted = True
        self._listeners: list[Listener] = []
        #zapisy w kolejnosci commitow
        self._write_lock = asyncio.Lock()

    #query
    def get(self) -> Cart | None:
        #kopia do odczytu, nikt poza store nie modyfikuje koszyka
        return self._cart.model_copy(deep=True) if self._cart else None

    @property
    def cart_id(self) -> str | None:
        return self._cart.id if self._cart else None

    @property
    def verified(self) -> bool:
        return self._verified

    @property
    def persisted(self) -> bool:
        """False gdy ostatni commit nie trafil do slotu."""
        return self._persisted

    #commands
    async def replace(self, cart: Cart, verified: bool = True) -> None:
        self._cart = cart.model_copy(deep=True)
        self._verified = verified
        logger.info(f"Snapshot replaced: cart {cart.id}, {cart.item_count} items, total {cart.total}")
        self._notify()
        await self.persist()

    async def clear(self) -> None:
        self._cart = None
        self._verified = True
        logger.info("Snapshot cleared")
        self._notify()
        await self.persist()

    async def persist(self) -> bool:
        async with self._write_lock:
            #stan czytany pod lockiem, zapisuje sie zawsze najnowszy commit
            if self._cart is None:
                self._persisted = await delete_slot(self.slots, self.key)
            else:
                self._persisted = await write_slot(self.slots, self.key, self._cart.model_dump_json())

        if not self._persisted:
            logger.error(f"Cart snapshot not persisted, keeping in-memory copy of cart {self.cart_id}")
        return self._persisted

    async def restore(self) -> Cart | None:
        raw = await read_slot(self.slots, self.key)
        if raw is None:
            logger.info("No cart snapshot in storage")
            return None

        try:
            cart = Cart.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable cart snapshot: {e.error_count()} errors")
            await delete_slot(self.slots, self.key)
            return None

        self._cart = cart
        self._verified = False
        logger.info(f"Cart {cart.id} restored from storage (unverified)")
        self._notify()
        return self.get()

    #observers
    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.get()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.warning(f"Snapshot listener failed: {e}")
