# -----------------------------------------------------------------------------
# Units & Quantities
# Purpose:
#   Single pint registry shared by formulas, catalogs and the API, plus the
#   small parse/format helpers the binding layer needs.
# Scope:
#   The solver itself never looks inside a Quantity; it only passes them to
#   formulas. Everything here is convenience for callers.
# Safety:
#   - Raises UnitError on unknown or malformed input.
# -----------------------------------------------------------------------------

from __future__ import annotations
import numbers
from typing import Any

import pint
from pint import UnitRegistry

class UnitError(Exception): pass

_UR = UnitRegistry(autoconvert_offset_to_baseunit=True)
_Q_ = _UR.Quantity

# Symbols users type that pint does not know under that spelling.
_SYMBOLS = {
    "\u03a9": "ohm",   # GREEK CAPITAL OMEGA
    "\u2126": "ohm",   # OHM SIGN
}


def q(value: float, unit: str = ""):
    """Create a Quantity; an empty unit means dimensionless."""
    try:
        return _Q_(value, unit or "dimensionless")
    except (pint.errors.PintError, AttributeError, TypeError, ValueError) as e:
        raise UnitError(f"Unknown unit: {unit}") from e


def is_quantity(value: Any) -> bool:
    return isinstance(value, _UR.Quantity)


def as_quantity(value: Any):
    """
    Coerce a formula result into a Quantity.
    Bare numbers become dimensionless; Quantities pass through untouched.
    """
    if is_quantity(value):
        return value
    if isinstance(value, numbers.Real) and not isinstance(value, bool):
        return _Q_(value, "dimensionless")
    raise UnitError(f"Expected a quantity or number, got {type(value).__name__}")


def parse_quantity(text: str):
    """
    Parse strings like "150 mΩ", "20 V", "0.26" into a Quantity.
    The Ω sign is accepted as ohm.
    """
    if text is None:
        raise UnitError("Value is None")
    raw = str(text).strip()
    if not raw:
        raise UnitError("Empty value")
    for sym, name in _SYMBOLS.items():
        raw = raw.replace(sym, name)
    try:
        parsed = _Q_(raw)
    except (pint.errors.PintError, AttributeError, TypeError, ValueError, SyntaxError) as e:
        raise UnitError(f"Cannot parse quantity: {text}") from e
    if not isinstance(parsed.magnitude, numbers.Real):
        raise UnitError(f"Cannot parse quantity: {text}")
    return parsed


def same_dimension(a: Any, b: Any) -> bool:
    return as_quantity(a).dimensionality == as_quantity(b).dimensionality


def convert_like(value: Any, reference: Any):
    """
    Express `value` in the units of `reference` when both share a dimension,
    otherwise reduce it as far as pint can. Keeps stored fields readable
    (V/Ω comes back as mA when the field was entered in mA).
    """
    value = as_quantity(value)
    if reference is not None and is_quantity(reference) and same_dimension(value, reference):
        return value.to(reference.units)
    return value.to_reduced_units()


def format_quantity(value: Any, precision: int = 9) -> str:
    """Render a Quantity with a compact SI prefix, ohm shown as Ω."""
    qty = as_quantity(value)
    if qty.dimensionless:
        return f"{qty.to('dimensionless').magnitude:.{precision}g}"
    if qty.magnitude != 0:
        qty = qty.to_compact()
    unit = f"{qty.units:~P}"
    text = f"{qty.magnitude:.{precision}g} {unit}".strip()
    return text.replace("ohm", "Ω")
