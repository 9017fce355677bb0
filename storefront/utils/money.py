# storefront/utils/money.py
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

#waluty bez groszy (minor unit = major unit)
ZERO_DECIMAL_CURRENCIES = {"JPY", "KRW", "VND", "CLP", "ISK", "HUF"}
MINOR_UNIT_FACTOR = Decimal(100)


def decimal_to_minor(value: str | Decimal) -> int:
    """'19.99' -> 1999"""
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError(f"Niepoprawna kwota: {value!r}") from e
    if not amount.is_finite():
        raise ValueError(f"Niepoprawna kwota: {value!r}")
    return int((amount * MINOR_UNIT_FACTOR).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_price(amount: int, currency_code: str | None) -> str:
    code = (currency_code or "USD").upper()
    if code in ZERO_DECIMAL_CURRENCIES:
        return f"{code} {amount}"
    major = (Decimal(amount) / MINOR_UNIT_FACTOR).quantize(Decimal("0.01"))
    return f"{code} {major:,.2f}"


def round_minor(value: float | Decimal) -> int:
    """1234.5 -> 1235, ulamkowa kwota w jednostkach drobnych"""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
