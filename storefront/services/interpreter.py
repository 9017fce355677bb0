# storefront/services/interpreter.py
"""Tolerant interpretation of commerce API response bodies.

Backend endpoints and versions return the same entity in different envelopes:
the bare object, ``{"cart": {...}}``, ``{"data": {...}}`` or only
``{"success": true}``. ``interpret`` never raises on shape drift; it returns the
decoded entity or ``NEEDS_REFETCH``, after which the caller must issue an
authoritative GET instead of guessing.

Precedence:
1. strict decode of the whole payload,
2. entity under a wrapper key (``cart``/``data``/the entity's own key) or a
   nested object matching the entity's identity keys, decoded recursively,
3. boolean success flag without entity -> NEEDS_REFETCH,
4. anything else -> NEEDS_REFETCH.
"""
from __future__ import annotations

import json
from typing import Any, TypeVar

from pydantic import ValidationError

from storefront.domain.schemas import Entity
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

E = TypeVar("E", bound=Entity)

COMMON_WRAPPER_KEYS = ("data",)
SUCCESS_FLAG_KEYS = ("success", "deleted", "ok")
MAX_DEPTH = 3


class NeedsRefetch:
    """Write probably succeeded, body is not trustworthy."""

    _instance: "NeedsRefetch | None" = None

    def __new__(cls) -> "NeedsRefetch":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NEEDS_REFETCH"

    def __bool__(self) -> bool:
        return False


NEEDS_REFETCH = NeedsRefetch()


def parse_body(raw: Any) -> Any:
    """bytes/str -> JSON, reszta bez zmian. Nieparsowalne -> None."""
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        if not raw.strip():
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return None
    return raw


def _strict(payload: Any, model: type[E]) -> E | None:
    if not isinstance(payload, dict):
        return None
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        logger.debug(f"Strict decode of {model.__name__} failed: {e.error_count()} errors")
        return None


def _candidates(payload: dict, model: type[E]) -> list[Any]:
    keys = list(model.envelope_keys) + [k for k in COMMON_WRAPPER_KEYS if k not in model.envelope_keys]
    found = [payload[k] for k in keys if isinstance(payload.get(k), dict)]

    # heurystyka: dowolny zagniezdzony obiekt z polami tozsamosci (np. id + email)
    for key, value in payload.items():
        if key in keys or not isinstance(value, dict):
            continue
        if all(k in value for k in model.identity_keys) and len(model.identity_keys) > 1:
            found.append(value)
    return found


def _decode(payload: Any, model: type[E], depth: int) -> E | None:
    entity = _strict(payload, model)
    if entity is not None:
        return entity
    if depth >= MAX_DEPTH or not isinstance(payload, dict):
        return None
    for candidate in _candidates(payload, model):
        entity = _decode(candidate, model, depth + 1)
        if entity is not None:
            return entity
    return None


def has_success_flag(payload: Any) -> bool:
    return isinstance(payload, dict) and any(payload.get(k) is True for k in SUCCESS_FLAG_KEYS)


def interpret(raw: Any, model: type[E]) -> E | NeedsRefetch:
    payload = parse_body(raw)

    entity = _decode(payload, model, 0)
    if entity is not None:
        return entity

    if has_success_flag(payload):
        logger.info(f"Response acknowledged without {model.__name__} body, refetch required")
        return NEEDS_REFETCH

    logger.warning(f"Could not interpret response as {model.__name__}, refetch required")
    return NEEDS_REFETCH


def interpret_many(raw: Any, model: type[E], list_key: str) -> list[E] | NeedsRefetch:
    """Lista encji: goly array, {list_key: [...]} albo {"data": {list_key: [...]}}."""
    payload = parse_body(raw)

    items: Any = None
    if isinstance(payload, list):
        items = payload
    elif isinstance(payload, dict):
        if isinstance(payload.get(list_key), list):
            items = payload[list_key]
        elif isinstance(payload.get("data"), list):
            items = payload["data"]
        elif isinstance(payload.get("data"), dict) and isinstance(payload["data"].get(list_key), list):
            items = payload["data"][list_key]

    if items is None:
        logger.warning(f"Could not find {list_key} list in response")
        return NEEDS_REFETCH

    decoded: list[E] = []
    for index, item in enumerate(items):
        entity = _strict(item, model)
        if entity is None:
            logger.warning(f"Skipping undecodable {model.__name__} at index {index}")
            continue
        decoded.append(entity)
    return decoded
