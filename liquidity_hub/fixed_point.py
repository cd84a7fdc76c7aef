"""
fixed_point.py - Rounding-aware integer fixed-point arithmetic

Every helper takes an explicit Rounding direction. Callers choose the
direction that favours the pool; nothing here rounds half-up.

Scales:
    RAY (1e27)                - interest indexes and annual rates
    WAD (1e18)                - health factors
    PERCENTAGE_FACTOR (1e4)   - basis points
"""

from __future__ import annotations

from .core import RAY, WAD, PERCENTAGE_FACTOR, Rounding


def mul_div(x: int, y: int, denominator: int, rounding: Rounding = Rounding.FLOOR) -> int:
    """
    Compute x * y / denominator with the requested rounding.

    Raises:
        ZeroDivisionError: if denominator is 0
        ValueError: if any input is negative
    """
    if denominator == 0:
        raise ZeroDivisionError("mul_div by zero")
    if x < 0 or y < 0 or denominator < 0:
        raise ValueError(f"mul_div expects non-negative ints, got {x}, {y}, {denominator}")
    product = x * y
    quotient, remainder = divmod(product, denominator)
    if rounding is Rounding.CEIL and remainder:
        quotient += 1
    return quotient


def ray_mul(a: int, b: int, rounding: Rounding = Rounding.FLOOR) -> int:
    return mul_div(a, b, RAY, rounding)


def ray_div(a: int, b: int, rounding: Rounding = Rounding.FLOOR) -> int:
    return mul_div(a, RAY, b, rounding)


def wad_mul(a: int, b: int, rounding: Rounding = Rounding.FLOOR) -> int:
    return mul_div(a, b, WAD, rounding)


def wad_div(a: int, b: int, rounding: Rounding = Rounding.FLOOR) -> int:
    return mul_div(a, WAD, b, rounding)


def percent_mul(value: int, percentage: int, rounding: Rounding = Rounding.FLOOR) -> int:
    """Apply a basis-point percentage: percent_mul(200, 5_000) == 100."""
    return mul_div(value, percentage, PERCENTAGE_FACTOR, rounding)


def percent_div(value: int, percentage: int, rounding: Rounding = Rounding.FLOOR) -> int:
    """Divide by a basis-point percentage: percent_div(120, 12_000) == 100."""
    return mul_div(value, PERCENTAGE_FACTOR, percentage, rounding)


def bps_to_ray(bps: int) -> int:
    return bps * (RAY // PERCENTAGE_FACTOR)
