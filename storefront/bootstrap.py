# storefront/bootstrap.py
from __future__ import annotations

from dataclasses import dataclass

from storefront.services.association import AssociationWorkflow
from storefront.services.auth_service import AuthService
from storefront.services.cart_service import CartOrchestrator
from storefront.services.checkout_service import CheckoutService
from storefront.services.commerce_base import CommerceGateway
from storefront.services.commerce_client import CommerceClient
from storefront.services.credential_store import CredentialStore
from storefront.services.events import EventBus
from storefront.services.orders_service import OrdersService
from storefront.services.slot_store import SlotStore, get_slot_store
from storefront.services.snapshot_store import CartSnapshotStore


@dataclass(frozen=True)
class Container:
    gateway: CommerceGateway
    snapshot: CartSnapshotStore
    credentials: CredentialStore
    events: EventBus
    cart: CartOrchestrator
    auth: AuthService
    checkout: CheckoutService
    orders: OrdersService


def build_container(
    gateway: CommerceGateway | None = None,
    slots: SlotStore | None = None,
) -> Container:
    gateway = gateway or CommerceClient()
    slots = slots or get_slot_store()

    snapshot = CartSnapshotStore(slots)
    credentials = CredentialStore(slots)
    events = EventBus()

    association = AssociationWorkflow(gateway, snapshot, credentials)
    cart = CartOrchestrator(gateway, snapshot, credentials, association=association, events=events)

    return Container(
        gateway=gateway,
        snapshot=snapshot,
        credentials=credentials,
        events=events,
        cart=cart,
        auth=AuthService(gateway, credentials, events),
        checkout=CheckoutService(gateway, credentials),
        orders=OrdersService(gateway, credentials),
    )
