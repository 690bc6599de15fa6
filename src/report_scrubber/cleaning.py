"""Field-level cleaning: NHS number validation and blank-to-None trimming."""

from __future__ import annotations

NHS_NUMBER_LENGTH = 10
# Numbers divisible by this are the ten repeating-digit sequences
# (0000000000 ... 9999999999), reserved for testing.
_REPEATING_DIGITS = 1111111111


def _check_digit(digits: str) -> int | None:
    """Modulus 11 check digit for the first nine digits; None if unusable."""
    total = sum((10 - i) * int(d) for i, d in enumerate(digits[:9]))
    remainder = total % 11
    check = 0 if remainder == 0 else 11 - remainder
    return None if check == 10 else check


def is_valid_nhs_number(digits: str) -> bool:
    if len(digits) != NHS_NUMBER_LENGTH or not digits.isdigit():
        return False
    check = _check_digit(digits)
    if check is None or check != int(digits[9]):
        return False
    return int(digits) % _REPEATING_DIGITS != 0


def validate_nhs_number(raw: str | None) -> str | None:
    """Strip non-digits and validate.  Returns the 10-digit string or None."""
    if not raw:
        return None
    digits = "".join(c for c in raw if "0" <= c <= "9")
    return digits if is_valid_nhs_number(digits) else None


def clean_field(value: str | None) -> str | None:
    """Trimmed value, or None if nothing is left."""
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None
