# storefront/domain/results.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from storefront.domain.schemas import Cart, Order


class Outcome(str, Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    UNCHANGED = "UNCHANGED"
    RECREATED = "RECREATED"
    REFETCHED = "REFETCHED"
    ASSOCIATED = "ASSOCIATED"
    ALREADY_ASSOCIATED = "ALREADY_ASSOCIATED"
    NO_ADDRESSES = "NO_ADDRESSES"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    PRECONDITION_FAILED = "PRECONDITION_FAILED"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"


@dataclass(frozen=True, slots=True)
class CartResult:
    """Completion signal of a single orchestrator operation."""

    ok: bool
    outcome: Outcome
    cart: Cart | None = None
    error: str | None = None
    order: Order | None = None

    @classmethod
    def success(
        cls,
        outcome: Outcome,
        cart: Cart | None = None,
        order: Order | None = None,
    ) -> "CartResult":
        return cls(ok=True, outcome=outcome, cart=cart, order=order)

    @classmethod
    def failure(cls, outcome: Outcome, error: str, cart: Cart | None = None) -> "CartResult":
        return cls(ok=False, outcome=outcome, cart=cart, error=error)


@dataclass(frozen=True, slots=True)
class AssociationResult:
    ok: bool
    outcome: Outcome
    total_operations: int = 0
    submitted: tuple[str, ...] = ()
    refetched: bool = False
    error: str | None = None
