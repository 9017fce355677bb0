# storefront/api/__init__.py
from fastapi import HTTPException, Request

from storefront.bootstrap import Container
from storefront.domain.errors import PreconditionError, TransportError
from storefront.domain.results import CartResult, Outcome
from storefront.domain.schemas import CartOut

#wynik operacji -> kod HTTP (sukces zawsze 200)
STATUS_BY_OUTCOME = {
    Outcome.PRECONDITION_FAILED: 400,
    Outcome.NO_ADDRESSES: 400,
    Outcome.REJECTED: 409,
    Outcome.TRANSPORT_ERROR: 502,
}


def get_container(request: Request) -> Container:
    return request.app.state.container


def cart_out(container: Container, result: CartResult) -> CartOut:
    if not result.ok:
        raise HTTPException(status_code=STATUS_BY_OUTCOME.get(result.outcome, 400), detail=result.error)

    return CartOut(
        ok=result.ok,
        outcome=result.outcome.value,
        state=container.cart.state.value,
        cart=result.cart,
        order=result.order,
        error=result.error,
        verified=container.snapshot.verified,
    )


def service_error(e: PreconditionError | TransportError) -> HTTPException:
    """Bledy serwisow (auth, checkout) -> HTTPException."""
    if isinstance(e, PreconditionError):
        return HTTPException(status_code=400, detail=str(e))
    return HTTPException(status_code=502, detail=str(e))
