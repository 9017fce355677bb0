# storefront/domain/errors.py
from __future__ import annotations


class CartError(Exception):
    """Base class for cart/checkout errors."""


class TransportError(CartError):
    """Non-2xx status or connectivity failure reported by the gateway.

    status is None when the request never produced an HTTP response.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status

    @property
    def transient(self) -> bool:
        return self.status is None or self.status >= 500

    @property
    def not_found(self) -> bool:
        return self.status == 404


class PreconditionError(CartError):
    """Operation rejected locally, before any network call."""
