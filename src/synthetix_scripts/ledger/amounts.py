"""
Base-unit amount helpers.

Every amount in a ledger is an integer number of base units serialized as a
decimal string. Python ints carry the arithmetic; Decimal is used only to move
between display units ("1.5" SNX) and base units.
"""

from decimal import Decimal, InvalidOperation, ROUND_DOWN, getcontext
from typing import Union

from synthetix_scripts.errors import InvalidInput

getcontext().prec = 80

DECIMALS = 18
PRECISION = 10 ** 6

Amount = Union[int, str]


def to_int(value: Amount) -> int:
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidInput(f"amount must be an integer or decimal string, got {value!r}")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text:
        return 0
    try:
        return int(text, 10)
    except ValueError as e:
        raise InvalidInput(f"not a base-unit integer string: {value!r}") from e


def to_str(value: Amount) -> str:
    return str(to_int(value))


def add(a: Amount, b: Amount) -> str:
    return str(to_int(a) + to_int(b))


def sub(a: Amount, b: Amount) -> str:
    return str(to_int(a) - to_int(b))


def parse_units(value: Union[str, int, Decimal], decimals: int = DECIMALS) -> int:
    """"1.5" -> 1500000000000000000. Digits past `decimals` are truncated."""
    if isinstance(value, float):
        raise InvalidInput(f"refusing float amount {value!r}; pass a string")
    try:
        d = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise InvalidInput(f"invalid amount: {value!r}") from e
    if not d.is_finite():
        raise InvalidInput(f"invalid amount: {value!r}")
    scaled = (d * (Decimal(10) ** decimals)).quantize(Decimal(1), rounding=ROUND_DOWN)
    return int(scaled)


def format_units(value: Amount, decimals: int = DECIMALS) -> str:
    n = to_int(value)
    sign = "-" if n < 0 else ""
    whole, frac = divmod(abs(n), 10 ** decimals)
    frac_s = str(frac).rjust(decimals, "0").rstrip("0")
    return f"{sign}{whole}.{frac_s or '0'}"


def reward_multiplier(pool: Amount, total: Amount, precision: int = PRECISION) -> int:
    """How many reward base units one escrowed base unit earns, scaled by `precision`."""
    total_i = to_int(total)
    if total_i <= 0:
        raise InvalidInput("total escrowed amount must be positive")
    return precision * to_int(pool) // total_i


def proportional_share(escrowed: Amount, multiplier: int, precision: int = PRECISION) -> int:
    return to_int(escrowed) * multiplier // precision
