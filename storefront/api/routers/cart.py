#storefront/api/routers/cart.py
from fastapi import APIRouter, Depends, HTTPException

from storefront.api import cart_out, get_container, service_error
from storefront.bootstrap import Container
from storefront.domain.errors import PreconditionError, TransportError
from storefront.domain.results import CartResult, Outcome
from storefront.domain.schemas import (
    AddressIn,
    CartOut,
    CreateCartIn,
    ItemIn,
    ItemUpdateIn,
    PaymentProvider,
    PaymentSessionIn,
    ShippingMethodIn,
    ShippingOption,
)

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=CartOut)
def get_cart(container: Container = Depends(get_container)):
    cart = container.snapshot.get()
    if cart is None:
        raise HTTPException(status_code=404, detail="Koszyk nie znaleziony")
    return cart_out(container, CartResult.success(Outcome.UNCHANGED, cart))


@router.post("", response_model=CartOut)
async def create_cart(payload: CreateCartIn, container: Container = Depends(get_container)):
    return cart_out(container, await container.cart.create_cart(payload.region_id))


@router.post("/region", response_model=CartOut)
async def ensure_cart_for_region(payload: CreateCartIn, container: Container = Depends(get_container)):
    return cart_out(container, await container.cart.ensure_cart_for_region(payload.region_id))


@router.post("/refresh", response_model=CartOut)
async def refresh_cart(container: Container = Depends(get_container)):
    if container.snapshot.cart_id is None:
        raise HTTPException(status_code=404, detail="Koszyk nie znaleziony")
    return cart_out(container, await container.cart.refresh())


@router.delete("", status_code=204)
async def clear_cart(container: Container = Depends(get_container)):
    await container.cart.clear()


# =====================================================
# LINE ITEMS
# =====================================================
@router.post("/items", response_model=CartOut)
async def add_item(payload: ItemIn, container: Container = Depends(get_container)):
    result = await container.cart.add_line_item(payload.variant_id, payload.quantity, payload.region_id)
    return cart_out(container, result)


@router.post("/items/{line_item_id}", response_model=CartOut)
async def update_item(line_item_id: str, payload: ItemUpdateIn, container: Container = Depends(get_container)):
    return cart_out(container, await container.cart.update_line_item(line_item_id, payload.quantity))


@router.delete("/items/{line_item_id}", response_model=CartOut)
async def remove_item(line_item_id: str, container: Container = Depends(get_container)):
    return cart_out(container, await container.cart.remove_line_item(line_item_id))


# =====================================================
# ADDRESSES / CUSTOMER
# =====================================================
@router.post("/addresses", response_model=CartOut)
async def set_address(payload: AddressIn, container: Container = Depends(get_container)):
    if payload.customer_address_id:
        result = await container.cart.set_address_from_customer(payload.kind, payload.customer_address_id)
    elif payload.address is not None:
        result = await container.cart.set_address(payload.kind, payload.address)
    else:
        raise HTTPException(status_code=400, detail="Podaj adres albo customer_address_id")
    return cart_out(container, result)


@router.post("/addresses/copy-shipping", response_model=CartOut)
async def copy_shipping_to_billing(container: Container = Depends(get_container)):
    return cart_out(container, await container.cart.copy_shipping_to_billing())


@router.post("/associate")
async def associate_customer(container: Container = Depends(get_container)):
    result = await container.cart.associate_customer()
    if result.outcome in (Outcome.PRECONDITION_FAILED, Outcome.TRANSPORT_ERROR):
        status = 400 if result.outcome == Outcome.PRECONDITION_FAILED else 502
        raise HTTPException(status_code=status, detail=result.error)
    return {
        "ok": result.ok,
        "outcome": result.outcome.value,
        "total_operations": result.total_operations,
        "submitted": list(result.submitted),
        "refetched": result.refetched,
        "error": result.error,
        "cart": container.snapshot.get(),
    }


# =====================================================
# CHECKOUT
# =====================================================
@router.get("/shipping-options", response_model=list[ShippingOption])
async def list_shipping_options(container: Container = Depends(get_container)):
    try:
        return await container.checkout.shipping_options(container.snapshot.cart_id)
    except (PreconditionError, TransportError) as e:
        raise service_error(e)


@router.post("/shipping-methods", response_model=CartOut)
async def select_shipping_option(payload: ShippingMethodIn, container: Container = Depends(get_container)):
    return cart_out(container, await container.cart.select_shipping_option(payload.option_id))


@router.get("/payment-providers", response_model=list[PaymentProvider])
async def list_payment_providers(container: Container = Depends(get_container)):
    cart = container.snapshot.get()
    try:
        return await container.checkout.payment_providers(cart.region_id if cart else None)
    except (PreconditionError, TransportError) as e:
        raise service_error(e)


@router.post("/payment-collection", response_model=CartOut)
async def create_payment_collection(container: Container = Depends(get_container)):
    return cart_out(container, await container.cart.create_payment_collection())


@router.post("/payment-sessions", response_model=CartOut)
async def select_payment_provider(payload: PaymentSessionIn, container: Container = Depends(get_container)):
    collection_id = payload.payment_collection_id
    if collection_id is None:
        #domyslnie kolekcja z aktualnego koszyka
        cart = container.snapshot.get()
        if cart is not None and cart.payment_collection is not None:
            collection_id = cart.payment_collection.id
    return cart_out(container, await container.cart.select_payment_provider(collection_id, payload.provider_id))


@router.post("/complete", response_model=CartOut)
async def complete_cart(container: Container = Depends(get_container)):
    return cart_out(container, await container.cart.complete_cart())
