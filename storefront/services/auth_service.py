# storefront/services/auth_service.py
from __future__ import annotations

from typing import Any

from storefront.domain.errors import PreconditionError, TransportError
from storefront.domain.schemas import Address, Customer
from storefront.services.commerce_base import CommerceGateway
from storefront.services.credential_store import CredentialStore
from storefront.services.events import CustomerAuthenticated, CustomerLoggedOut, EventBus
from storefront.services.interpreter import NeedsRefetch, interpret, parse_body
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def _token_from(raw: Any, action: str) -> str:
    payload = parse_body(raw)
    token = payload.get("token") if isinstance(payload, dict) else None
    if not isinstance(token, str) or not token:
        raise TransportError(f"{action} response has no token")
    return token


class AuthService:
    """
    Konto klienta (email + haslo)
    -rejestracja: konto auth -> profil klienta -> zwykle logowanie
    -token zapisywany w credential store
    -profil z adresami pobierany zaraz po logowaniu i po kazdej zmianie ksiazki adresowej
    -koszyk dowiaduje sie o logowaniu/wylogowaniu przez EventBus
    """

    def __init__(self, gateway: CommerceGateway, credentials: CredentialStore, events: EventBus):
        self.gateway = gateway
        self.credentials = credentials
        self.events = events

    def _require_token(self) -> str:
        token = self.credentials.token
        if not token:
            raise PreconditionError("Brak tokenu klienta")
        return token

    # =====================================================
    # SESSION
    # =====================================================
    async def login(self, email: str, password: str) -> Customer:
        if not email or not password:
            raise PreconditionError("Email i haslo sa wymagane")

        token = _token_from(await self.gateway.login(email, password), "Login")
        await self.credentials.set_token(token)
        logger.info(f"Customer {email} authenticated")

        customer = await self.refresh_profile()
        await self.events.publish(CustomerAuthenticated(customer))
        return customer

    async def register(
        self,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        phone: str | None = None,
    ) -> Customer:
        if not email or not password:
            raise PreconditionError("Email i haslo sa wymagane")
        if not first_name or not last_name:
            raise PreconditionError("Imie i nazwisko sa wymagane")

        # 1. konto auth
        registration_token = _token_from(await self.gateway.register(email, password), "Registration")
        logger.info(f"Auth identity registered for {email}")

        # 2. profil klienta na tokenie rejestracyjnym
        body = {"email": email, "first_name": first_name, "last_name": last_name}
        if phone:
            body["phone"] = phone
        await self.gateway.create_customer(body, registration_token)
        logger.info(f"Customer profile created for {email}")

        # 3. sesja jak po zwyklym logowaniu
        return await self.login(email, password)

    async def refresh_profile(self) -> Customer:
        token = self._require_token()

        customer = interpret(await self.gateway.get_customer(token), Customer)
        if isinstance(customer, NeedsRefetch):
            raise TransportError("GET /customers/me returned no readable customer")

        #token mogl sie zmienic w trakcie (logout)
        if self.credentials.token == token:
            await self.credentials.set_customer(customer)
        logger.info(f"Customer profile {customer.id} loaded, {len(customer.addresses)} addresses")
        return customer

    async def logout(self) -> None:
        customer = self.credentials.customer
        await self.credentials.clear()
        await self.events.publish(CustomerLoggedOut(customer.id if customer else None))

    # =====================================================
    # ADDRESS BOOK
    # =====================================================
    async def add_address(self, address: Address) -> Customer:
        token = self._require_token()
        raw = await self.gateway.add_customer_address(address.to_customer_payload(), token)
        return await self._store_profile(raw, token, "add address")

    async def update_address(self, address_id: str, address: Address) -> Customer:
        if not address_id:
            raise PreconditionError("Id adresu jest wymagane")
        token = self._require_token()
        raw = await self.gateway.update_customer_address(address_id, address.to_customer_payload(), token)
        return await self._store_profile(raw, token, f"update address {address_id}")

    async def delete_address(self, address_id: str) -> Customer:
        if not address_id:
            raise PreconditionError("Id adresu jest wymagane")
        token = self._require_token()
        raw = await self.gateway.delete_customer_address(address_id, token)
        return await self._store_profile(raw, token, f"delete address {address_id}")

    async def _store_profile(self, raw: Any, token: str, action: str) -> Customer:
        """Profil z odpowiedzi zmiany adresu, a gdy jej nie ma - GET /customers/me."""
        customer = interpret(raw, Customer)
        if isinstance(customer, NeedsRefetch):
            logger.info(f"{action}: response without customer, refreshing profile")
            return await self.refresh_profile()

        if self.credentials.token == token:
            await self.credentials.set_customer(customer)
        logger.info(f"{action}: customer {customer.id} now has {len(customer.addresses)} addresses")
        return customer
