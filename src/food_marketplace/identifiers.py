"""Base36 encoding shared by order numbers and like fingerprints."""

import string

BASE36_ALPHABET = string.digits + string.ascii_lowercase


def to_base36(value: int) -> str:
    """Encode a non-negative integer in lower-case base36."""
    if value < 0:
        raise ValueError("value must be non-negative")

    digits = []
    while True:
        value, remainder = divmod(value, 36)
        digits.append(BASE36_ALPHABET[remainder])
        if value == 0:
            return "".join(reversed(digits))
