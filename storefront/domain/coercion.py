# storefront/domain/coercion.py
"""Flexible scalar coercion for leaf fields of decoded entities.

Backend versions disagree on scalar encodings (``12`` vs ``"12"``,
``true`` vs ``"1"``, minor units vs ``"19.99"``). These helpers are attached to
leaf fields only; identity and required name fields are never coerced.

Money follows the written form: native numbers and dot-less strings are minor
units, dotted strings are major units. See ``coerce_money``.
"""
from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any

from pydantic import BeforeValidator, Field

from storefront.utils.money import decimal_to_minor, round_minor

_TRUE_STRINGS = {"true", "1"}
_FALSE_STRINGS = {"false", "0", ""}


def coerce_int(value: Any) -> Any:
    if isinstance(value, bool):
        raise ValueError("bool nie jest liczba")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"Liczba niecalkowita: {value}")
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            number = Decimal(text)
        except InvalidOperation as e:
            raise ValueError(f"Niepoprawna liczba: {value!r}") from e
        if not number.is_finite() or number != number.to_integral_value():
            raise ValueError(f"Niepoprawna liczba: {value!r}")
        return int(number)
    # None i inne typy oddajemy pydanticowi
    return value


def coerce_money(value: Any) -> Any:
    """Kwota -> int w jednostkach drobnych. O jednostce decyduje zapis, nie wartosc:

    - liczba JSON i napis bez kropki to jednostki drobne (``2000``, ``"2000"``, ``20.0`` -> 20)
    - napis z kropka to jednostki glowne (``"20.0"`` -> 2000, ``"19.99"`` -> 1999)
    - ulamkowa liczba JSON (np. 1234.5 po podziale podatku) jest zaokraglana do pelnej jednostki
    """
    if isinstance(value, bool):
        raise ValueError("bool nie jest kwota")
    if isinstance(value, str) and "." in value:
        return decimal_to_minor(value)
    if isinstance(value, float) and math.isfinite(value) and not value.is_integer():
        return round_minor(value)
    return coerce_int(value)


def coerce_bool(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        raise ValueError(f"Niepoprawna wartosc logiczna: {value!r}")
    return value


FlexInt = Annotated[int, BeforeValidator(coerce_int)]
Money = Annotated[int, BeforeValidator(coerce_money), Field(ge=0)]
FlexBool = Annotated[bool, BeforeValidator(coerce_bool)]
