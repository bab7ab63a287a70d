import pytest

from csolve.constraint import Constraint, ConstraintDefinitionError
from csolve.formula import Formula


def _f(deps, computes, priority=0):
    return Formula.create(deps, computes, lambda s: 0, priority=priority)

def test_fields_are_frozen(ohms_law):
    assert ohms_law.fields == frozenset({"i", "r", "v"})

def test_empty_fields_rejected():
    with pytest.raises(ConstraintDefinitionError):
        Constraint.create("nothing", [])

def test_partition_invariant(ohms_law):
    for f in ohms_law.formulas():
        assert f.computes | f.dependencies == ohms_law.fields
        assert not (f.computes & f.dependencies)

def test_formula_missing_dependency_rejected():
    c = Constraint.create("abc", ["a", "b", "c"])
    with pytest.raises(ConstraintDefinitionError, match="missing dependencies"):
        c.add_formula(_f(["b"], "a"))

def test_formula_extra_dependency_rejected():
    c = Constraint.create("abc", ["a", "b", "c"])
    with pytest.raises(ConstraintDefinitionError, match="dependencies outside"):
        c.add_formula(_f(["b", "c", "d"], "a"))

def test_formula_computing_foreign_field_rejected():
    c = Constraint.create("abc", ["a", "b", "c"])
    with pytest.raises(ConstraintDefinitionError, match="computes fields outside"):
        c.add_formula(_f(["a", "b", "c"], "d"))

def test_duplicate_computes_rejected():
    c = Constraint.create("abc", ["a", "b", "c"])
    c.add_formula(_f(["b", "c"], "a"))
    with pytest.raises(ConstraintDefinitionError, match="already exists"):
        c.add_formula(_f(["b", "c"], "a", priority=3))
    assert len(list(c.formulas())) == 1

def test_formulas_sorted_by_priority():
    c = Constraint.create("abc", ["a", "b", "c"])
    fa = _f(["b", "c"], "a", priority=2)
    fb = _f(["a", "c"], "b", priority=0)
    fc = _f(["a", "b"], "c", priority=2)
    for f in (fa, fb, fc):
        c.add_formula(f)
    assert list(c.formulas()) == [fb, fa, fc]

def test_applicable_formulas_skip_fixed_outputs(ohms_law):
    computed = [f.computes for f in ohms_law.applicable_formulas({"r"})]
    # v has the lower priority number, i/r tie and keep declaration order
    assert computed == [frozenset({"v"}), frozenset({"i"})]

def test_applicable_formulas_none_when_all_outputs_fixed(ohms_law):
    assert list(ohms_law.applicable_formulas({"i", "r", "v"})) == []

def test_applicable_formulas_with_multi_output():
    c = Constraint.create("abcd", ["a", "b", "c", "d"])
    f_ab = _f(["c", "d"], ["a", "b"], priority=0)
    f_a = _f(["b", "c", "d"], "a", priority=1)
    c.add_formula(f_a)
    c.add_formula(f_ab)
    assert list(c.applicable_formulas({"d"})) == [f_ab, f_a]
    assert list(c.applicable_formulas({"b"})) == [f_a]

def test_decompositions():
    ab = Constraint.create("ab", ["a", "b"])
    bc = Constraint.create("bc", ["b", "c"])
    z = Constraint.create("ac", ["a", "c"])
    z.add_decomposition(ab, bc)
    z.add_decomposition(bc, ab)
    assert z.decompositions == [frozenset({ab, bc})]
    with pytest.raises(ConstraintDefinitionError):
        z.add_decomposition(z, ab)
    with pytest.raises(ConstraintDefinitionError):
        z.add_decomposition()
