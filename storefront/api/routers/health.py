from fastapi import APIRouter, Depends

from storefront.api import get_container
from storefront.bootstrap import Container

router = APIRouter(tags=["health"])


@router.get("/health")
def health(container: Container = Depends(get_container)):
    return {
        "status": "ok",
        "cart_id": container.snapshot.cart_id,
        "state": container.cart.state.value,
        "authenticated": container.credentials.is_authenticated,
        "persisted": container.snapshot.persisted,
    }
