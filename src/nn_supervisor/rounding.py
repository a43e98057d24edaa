from __future__ import annotations

import math
from typing import Callable

# (value, precision) -> rounded value
RoundFunc = Callable[[float, int], float]

_EXACT = 2.0**52


def _round_half_away(x: float) -> float:
    # Ties go away from zero everywhere in the package: 0.5 -> 1, -2.5 -> -3.
    # Non-finite values and floats past 2**52 (already whole) pass through.
    if not math.isfinite(x) or abs(x) >= _EXACT:
        return x
    a = abs(x)
    whole = math.floor(a)
    if a - whole >= 0.5:
        whole += 1
    return math.copysign(float(whole), x)


def round_nearest(value: float, places: int) -> float:
    multiplier = 10.0**places
    return _round_half_away(value * multiplier) / multiplier


def round_integer(value: float, _: int = 0) -> float:
    return _round_half_away(value)


def no_round(value: float, _: int = 0) -> float:
    return value


ROUNDING: dict[str, RoundFunc] = {
    "nearest": round_nearest,
    "integer": round_integer,
    "none": no_round,
}


def get_rounding(name: str) -> RoundFunc:
    try:
        return ROUNDING[name.strip().lower()]
    except KeyError:
        raise ValueError(f"unknown rounding policy {name!r}; choose one of {sorted(ROUNDING)}") from None
