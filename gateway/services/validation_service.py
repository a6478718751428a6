"""Format checks for customer payment instruments."""

import re
from typing import Optional

from gateway.utils import utcnow

VPA_PATTERN = re.compile(r"^[a-zA-Z0-9._-]+@[a-zA-Z0-9]+$")
CARD_NUMBER_PATTERN = re.compile(r"^\d{13,19}$")


def clean_card_number(card_number) -> str:
    return re.sub(r"[\s-]", "", str(card_number or ""))


def is_valid_vpa(vpa) -> bool:
    return isinstance(vpa, str) and bool(VPA_PATTERN.match(vpa))


def is_valid_card_number(card_number) -> bool:
    """Luhn (mod 10) check on 13-19 digit numbers."""
    clean = clean_card_number(card_number)
    if not CARD_NUMBER_PATTERN.match(clean):
        return False

    total = 0
    for index, char in enumerate(reversed(clean)):
        digit = int(char)
        if index % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10 == 0


def detect_card_network(card_number) -> str:
    clean = clean_card_number(card_number)
    if clean.startswith("4"):
        return "visa"

    first_two = int(clean[:2]) if clean[:2].isdigit() else -1
    if 51 <= first_two <= 55:
        return "mastercard"
    if first_two in (34, 37):
        return "amex"
    if clean.startswith(("60", "65")) or 81 <= first_two <= 89:
        return "rupay"
    return "unknown"


def _parse_int(value) -> Optional[int]:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def is_valid_expiry(month, year) -> bool:
    """True unless the card expired before the current calendar month."""
    m = _parse_int(month)
    y = _parse_int(year)
    if m is None or y is None or not 1 <= m <= 12:
        return False
    if len(str(year).strip()) == 2:
        y += 2000

    now = utcnow()
    return (y, m) >= (now.year, now.month)
