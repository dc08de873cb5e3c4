# utils.py
"""
FILE: utils.py
DESCRIPTION:
  Shared helper functions used across the project.
  - format_reading(): Fixed-point, one-decimal payload for sensor values.
  - parse_duration(): Converts "30s" / "1m30s" / 500ms style strings to seconds.
  - parse_address(): Accepts 118 or "0x76" for I2C addresses.
"""
import math
import re
from decimal import Decimal, ROUND_HALF_UP, localcontext

_ONE_DECIMAL = Decimal("0.1")

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def format_reading(value):
    """
    Formats a float with exactly one digit after the decimal point.

    Rounds half-up on the shortest decimal form of the value, so 2.45 -> "2.5"
    and 1013.25 -> "1013.3". Never produces scientific notation.
    """
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"Cannot format non-finite reading: {value}")
    with localcontext() as ctx:
        # Enough digits for any finite float (max ~1.8e308) plus one decimal
        ctx.prec = 400
        rounded = Decimal(repr(value)).quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP)
    if rounded == 0:
        # Avoid "-0.0" for tiny negative values
        rounded = abs(rounded)
    return f"{rounded:f}"


def parse_duration(value):
    """Returns seconds for a number or a duration string like "1m30s"."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)

    text = str(value).strip()
    if not text:
        raise ValueError("Empty duration")

    # Bare numbers in a string are seconds, same as numbers in YAML
    try:
        return float(text)
    except ValueError:
        pass

    sign = 1.0
    if text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            raise ValueError(f"Invalid duration: {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    if pos == 0 or pos != len(text):
        raise ValueError(f"Invalid duration: {value!r}")
    return sign * total


def parse_address(value):
    """Hardware addresses may come in as ints or hex strings ("0x76")."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid address: {value!r}")
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip(), 0)
    except ValueError:
        raise ValueError(f"Invalid address: {value!r}") from None
