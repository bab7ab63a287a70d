# -----------------------------------------------------------------------------
# Types module: Shared names and dataclasses for the constraint solver
# Purpose:
#   Define the field identifier type, the value-state mapping threaded through
#   formulas, and the field metadata loaded from a catalog.
# -----------------------------------------------------------------------------

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Mapping

# A field names one numeric quantity of the network (e.g. "v_in", "i_led").
Field = str
FieldSet = FrozenSet[Field]

# Field -> pint Quantity. Formulas read from a State and return a Values dict.
State = Mapping[Field, Any]
Values = Dict[Field, Any]


@dataclass(frozen=True)
class FieldSpec:
    """
    Metadata for one field of a catalog.
    - value: initial pint Quantity (its units are kept when results are stored)
    - label: human readable name, diagnostic only
    - locked: field starts out locked (never recomputed)
    - recompute: initial value is a placeholder and gets derived on load
    """
    name: Field
    value: Any
    label: str = ""
    locked: bool = False
    recompute: bool = False
