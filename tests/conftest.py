import pytest

from csolve.constraint import Constraint
from csolve.formula import Formula


def build_ohms_law() -> Constraint:
    """v = i * r; recomputing v is preferred over i or r."""
    c = Constraint.create("v = i * r", ["i", "r", "v"])
    c.add_formula(Formula.create(["r", "v"], "i", lambda s: s["v"] / s["r"], priority=1))
    c.add_formula(Formula.create(["i", "v"], "r", lambda s: s["v"] / s["i"], priority=1))
    c.add_formula(Formula.create(["i", "r"], "v", lambda s: s["i"] * s["r"]))
    return c


@pytest.fixture
def ohms_law() -> Constraint:
    return build_ohms_law()
