# storefront/services/events.py
from __future__ import annotations

import inspect
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from storefront.domain.schemas import Customer
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CustomerAuthenticated:
    customer: Customer


@dataclass(frozen=True)
class CustomerLoggedOut:
    customer_id: str | None = None


Handler = Callable[[Any], Awaitable[None] | None]


class EventBus:
    """
    Mala szyna zdarzen miedzy AuthService a CartOrchestrator
    -zamiast wzajemnych referencji serwisow
    -handlery wywolywane po kolei, blad jednego nie blokuje pozostalych
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    async def publish(self, event: Any) -> None:
        handlers = list(self._handlers.get(type(event), []))
        logger.info(f"[event] {type(event).__name__} -> {len(handlers)} handlers")
        for handler in handlers:
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Handler {getattr(handler, '__name__', handler)} failed for {type(event).__name__}: {e}")
