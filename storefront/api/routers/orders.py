#storefront/api/routers/orders.py
from fastapi import APIRouter, Depends, HTTPException

from storefront.api import get_container, service_error
from storefront.bootstrap import Container
from storefront.domain.errors import PreconditionError, TransportError
from storefront.domain.schemas import Order

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("", response_model=list[Order])
async def list_orders(container: Container = Depends(get_container)):
    if not container.credentials.is_authenticated:
        raise HTTPException(status_code=401, detail="Niezalogowany")
    try:
        return await container.orders.orders()
    except (PreconditionError, TransportError) as e:
        raise service_error(e)
