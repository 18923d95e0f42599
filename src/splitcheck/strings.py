"""Locale string bundle contract.

Bundle content is owned by the UI layer. The core only needs certain keys to
exist: it reads default names for new contributors and items, and the
terminal adapter reads column labels.
"""

import re
from collections.abc import Mapping

from .exceptions import LocaleStringsError

REQUIRED_KEYS = (
    "balance",
    "buyer",
    "checkTotal",
    "contribution",
    "contributorIndex",
    "contributorName",
    "cost",
    "deleteColumn",
    "deleteRow",
    "item",
    "itemIndex",
    "totalOwing",
    "totalPaid",
)

DEFAULT_STRINGS: dict[str, str] = {
    "balance": "Balance",
    "buyer": "Buyer",
    "checkTotal": "Check total",
    "contribution": "Contribution",
    "contributorIndex": "Contributor {index}",
    "contributorName": "Contributor name",
    "cost": "Cost",
    "deleteColumn": "Delete column",
    "deleteRow": "Delete row",
    "item": "Item",
    "itemIndex": "Item {index}",
    "totalOwing": "Total owing",
    "totalPaid": "Total paid",
}

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def validate_strings(strings: Mapping[str, str]) -> dict[str, str]:
    """
    Check that a locale bundle has every key the core looks up.

    Returns:
        A plain dict copy of the bundle

    Raises:
        LocaleStringsError: If any required key is missing
    """
    missing = [key for key in REQUIRED_KEYS if key not in strings]
    if missing:
        raise LocaleStringsError(missing)
    return dict(strings)


def interpolate_string(template: str, values: Mapping[str, str]) -> str:
    """Replace `{name}` placeholders; unknown placeholders are left as-is."""
    return _PLACEHOLDER.sub(
        lambda match: values.get(match.group(1), match.group(0)), template
    )
