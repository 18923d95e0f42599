"""Locale-aware parsing and formatting of currency amounts and split ratios.

All amounts are integer counts of a currency's minor unit (cents for USD).
Parsing never raises: text that cannot be read as a non-negative number
degrades to 0 so the editing grid always stays renderable.
"""

import logging
import math
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Literal

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "en-US"


class LocaleFormat(BaseModel):
    """Number formatting conventions for one locale."""

    model_config = ConfigDict(frozen=True)

    group: str
    decimal: str
    currency: str
    symbol_position: Literal["prefix", "suffix"] = "prefix"


LOCALE_FORMATS: dict[str, LocaleFormat] = {
    "en-US": LocaleFormat(group=",", decimal=".", currency="USD"),
    "en-CA": LocaleFormat(group=",", decimal=".", currency="CAD"),
    "en-GB": LocaleFormat(group=",", decimal=".", currency="GBP"),
    "fr-CA": LocaleFormat(
        group="\u00a0", decimal=",", currency="CAD", symbol_position="suffix"
    ),
    "fr-FR": LocaleFormat(
        group="\u202f", decimal=",", currency="EUR", symbol_position="suffix"
    ),
    "de-DE": LocaleFormat(
        group=".", decimal=",", currency="EUR", symbol_position="suffix"
    ),
    "ja-JP": LocaleFormat(group=",", decimal=".", currency="JPY"),
}

# ISO 4217 minor-unit exponents
CURRENCY_DIGITS: dict[str, int] = {
    "CAD": 2,
    "EUR": 2,
    "GBP": 2,
    "JPY": 0,
    "USD": 2,
}

CURRENCY_SYMBOLS: dict[str, str] = {
    "CAD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "USD": "$",
}

_WHITESPACE = re.compile(r"\s+")
_NUMBER = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$")


def normalize_locale(locale: str) -> str:
    """Normalize `en_us` / `EN-us` style tags to `en-US`."""
    parts = locale.replace("_", "-").split("-")
    if len(parts) == 1:
        return parts[0].lower()
    return f"{parts[0].lower()}-{parts[1].upper()}"


def get_locale_format(locale: str) -> LocaleFormat:
    """
    Look up the formatting conventions for a locale.

    Falls back to the first supported locale sharing the language, then to
    en-US.
    """
    tag = normalize_locale(locale)
    if tag in LOCALE_FORMATS:
        return LOCALE_FORMATS[tag]

    language = tag.split("-")[0]
    for known, fmt in LOCALE_FORMATS.items():
        if known.split("-")[0] == language:
            return fmt

    logger.debug(f"Unsupported locale '{locale}', using {DEFAULT_LOCALE}")
    return LOCALE_FORMATS[DEFAULT_LOCALE]


def get_currency_type(locale: str) -> str:
    """Get the default currency code for a locale."""
    return get_locale_format(locale).currency


def get_currency_digits(currency: str) -> int:
    """Get the number of minor-unit digits for a currency (2 if unknown)."""
    return CURRENCY_DIGITS.get(currency.upper(), 2)


def is_number(value: object) -> bool:
    """Check that a value is a finite int, float or Decimal (bools excluded)."""
    if isinstance(value, bool):
        return False
    if isinstance(value, Decimal):
        return value.is_finite()
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return math.isfinite(value)
    return False


def _to_decimal(
    fmt: LocaleFormat, text: str, strip: tuple[str, ...] = ()
) -> Decimal | None:
    """Reduce locale text to a Decimal, or None if it is not a plain number."""
    cleaned = text
    for token in strip:
        if token:
            cleaned = cleaned.replace(token, "")
    cleaned = _WHITESPACE.sub("", cleaned)
    if fmt.group.strip():
        cleaned = cleaned.replace(fmt.group, "")
    cleaned = cleaned.replace(fmt.decimal, ".")

    if not _NUMBER.match(cleaned):
        return None
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        return None


def _round_half_up(value: Decimal, shift: int = 0) -> int:
    """Round value * 10**shift half-up to an integer, at any length."""
    # The default context holds 28 digits; size it to the input instead
    with localcontext() as ctx:
        ctx.prec = max(len(value.as_tuple().digits) + shift + 2, ctx.prec)
        return int(value.scaleb(shift).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def parse_currency_amount(locale: str, currency: str, text: str) -> int:
    """
    Parse locale-formatted currency text into integer minor units.

    Rounds half-up to the currency's minor-unit precision.

    Args:
        locale: Locale tag used for separators (e.g. "en-US")
        currency: ISO 4217 currency code
        text: Text as shown or typed in the grid (e.g. "$1,234.56")

    Returns:
        Amount in minor units; 0 for unparseable or negative input
    """
    fmt = get_locale_format(locale)
    code = currency.upper()
    strip = (CURRENCY_SYMBOLS.get(code, ""), code, code.lower())
    amount = _to_decimal(fmt, text, strip)
    if amount is None or amount < 0:
        return 0

    return _round_half_up(amount, get_currency_digits(code))


def parse_ratio_amount(locale: str, text: str) -> int:
    """Parse a split ratio; anything that is not a non-negative number is 0."""
    value = _to_decimal(get_locale_format(locale), text)
    if value is None or value < 0:
        return 0
    return _round_half_up(value)


def _group_digits(digits: str, separator: str) -> str:
    groups = []
    while len(digits) > 3:
        groups.insert(0, digits[-3:])
        digits = digits[:-3]
    groups.insert(0, digits)
    return separator.join(groups)


def format_integer(locale: str, value: int) -> str:
    """Format an integer with the locale's digit grouping."""
    fmt = get_locale_format(locale)
    sign = "-" if value < 0 else ""
    return f"{sign}{_group_digits(str(abs(value)), fmt.group)}"


def format_currency(locale: str, amount: int, currency: str | None = None) -> str:
    """
    Format integer minor units as locale currency text.

    Args:
        locale: Locale tag
        amount: Amount in minor units (may be negative, e.g. a balance)
        currency: Currency code; defaults to the locale's currency

    Returns:
        Display string such as "$1,234.56" or "1.234,56 €"
    """
    fmt = get_locale_format(locale)
    code = (currency or fmt.currency).upper()
    digits = get_currency_digits(code)

    sign = "-" if amount < 0 else ""
    major, minor = divmod(abs(amount), 10**digits)
    number = _group_digits(str(major), fmt.group)
    if digits:
        number += fmt.decimal + str(minor).zfill(digits)

    symbol = CURRENCY_SYMBOLS.get(code, code)
    if fmt.symbol_position == "prefix":
        return f"{sign}{symbol}{number}"
    return f"{sign}{number}\u00a0{symbol}"
