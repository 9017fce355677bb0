#storefront/api/routers/auth.py
from fastapi import APIRouter, Depends, HTTPException

from storefront.api import get_container, service_error
from storefront.bootstrap import Container
from storefront.domain.errors import PreconditionError, TransportError
from storefront.domain.schemas import Address, Customer, LoginIn, RegisterIn

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=Customer)
async def login(payload: LoginIn, container: Container = Depends(get_container)):
    try:
        return await container.auth.login(payload.email, payload.password)
    except TransportError as e:
        if e.status in (400, 401):
            raise HTTPException(status_code=401, detail="Nieprawidlowy email lub haslo")
        raise service_error(e)
    except PreconditionError as e:
        raise service_error(e)


@router.get("/me", response_model=Customer)
async def me(container: Container = Depends(get_container)):
    if not container.credentials.is_authenticated:
        raise HTTPException(status_code=401, detail="Niezalogowany")
    try:
        return await container.auth.refresh_profile()
    except TransportError as e:
        if e.status == 401:
            raise HTTPException(status_code=401, detail="Sesja wygasla")
        raise service_error(e)


@router.post("/logout", status_code=204)
async def logout(container: Container = Depends(get_container)):
    await container.auth.logout()


@router.post("/register", response_model=Customer, status_code=201)
async def register(payload: RegisterIn, container: Container = Depends(get_container)):
    try:
        return await container.auth.register(
            payload.email, payload.password, payload.first_name, payload.last_name, payload.phone
        )
    except TransportError as e:
        if e.status in (400, 401, 409):
            raise HTTPException(status_code=409, detail="Nie udalo sie zarejestrowac konta (email zajety?)")
        raise service_error(e)
    except PreconditionError as e:
        raise service_error(e)


# =====================================================
# ADDRESS BOOK
# =====================================================
@router.post("/addresses", response_model=Customer, status_code=201)
async def add_address(payload: Address, container: Container = Depends(get_container)):
    try:
        return await container.auth.add_address(payload)
    except (PreconditionError, TransportError) as e:
        raise _address_error(e)


@router.post("/addresses/{address_id}", response_model=Customer)
async def update_address(address_id: str, payload: Address, container: Container = Depends(get_container)):
    try:
        return await container.auth.update_address(address_id, payload)
    except (PreconditionError, TransportError) as e:
        raise _address_error(e)


@router.delete("/addresses/{address_id}", response_model=Customer)
async def delete_address(address_id: str, container: Container = Depends(get_container)):
    try:
        return await container.auth.delete_address(address_id)
    except (PreconditionError, TransportError) as e:
        raise _address_error(e)


def _address_error(e: PreconditionError | TransportError) -> HTTPException:
    if not isinstance(e, PreconditionError) and e.status == 401:
        return HTTPException(status_code=401, detail="Sesja wygasla")
    if not isinstance(e, PreconditionError) and e.not_found:
        return HTTPException(status_code=404, detail="Adres nie znaleziony")
    return service_error(e)
