# -----------------------------------------------------------------------------
# Constraint: an equation over a fixed set of fields
# Purpose:
#   Hold the formulas that can satisfy one equation, plus alternative
#   decompositions into smaller constraints whose joint satisfaction implies
#   this one. Built at setup time, read-only while solving.
# -----------------------------------------------------------------------------

from __future__ import annotations
from typing import FrozenSet, Iterable, Iterator, List

from .formula import Formula
from .types import Field, FieldSet


class ConstraintDefinitionError(Exception): pass


class Constraint:
    """
    An equation relating `fields`, e.g. "v_s = r_s * i_led" over
    {i_led, r_s, v_s}. Satisfied either by applying one of its formulas or,
    when none applies, by satisfying every member of one decomposition.

    Constraints compare by identity; two equations with the same fields are
    still distinct constraints.
    """

    def __init__(self, name: str, fields: Iterable[Field]):
        self.name = name
        self.fields: FieldSet = frozenset(fields)
        if not self.fields:
            raise ConstraintDefinitionError(f'Constraint "{name}" has no fields.')
        # Alternatives, each a set of constraints implying this one. Kept as a
        # list so the solver tries them in the order they were declared.
        self.decompositions: List[FrozenSet["Constraint"]] = []
        self._formulas: List[Formula] = []
        self._dirty_order = False

    @classmethod
    def create(cls, name: str, fields: Iterable[Field]) -> "Constraint":
        return cls(name, fields)

    def __repr__(self) -> str:
        return f"Constraint({self.name!r})"

    def add_formula(self, formula: Formula) -> None:
        """
        Attach a formula. Its dependencies and computed fields must add up to
        exactly this constraint's fields, and no other formula may already
        compute the same fields.
        """
        if any(f.computes == formula.computes for f in self._formulas):
            raise ConstraintDefinitionError(
                f'Formula computing {", ".join(sorted(formula.computes))} already exists '
                f'in "{self.name}".'
            )

        extra = formula.computes - self.fields
        if extra:
            raise ConstraintDefinitionError(
                f'Formula computes fields outside of "{self.name}": {", ".join(sorted(extra))}.'
            )

        expected = self.fields - formula.computes
        missing = expected - formula.dependencies
        if missing:
            raise ConstraintDefinitionError(
                f'Formula is missing dependencies of "{self.name}": {", ".join(sorted(missing))}.'
            )
        extra = formula.dependencies - expected
        if extra:
            raise ConstraintDefinitionError(
                f'Formula has dependencies outside of "{self.name}": {", ".join(sorted(extra))}.'
            )

        self._formulas.append(formula)
        self._dirty_order = True

    def add_decomposition(self, *constraints: "Constraint") -> None:
        """Declare that satisfying all `constraints` implies this constraint."""
        if self in constraints:
            raise ConstraintDefinitionError(f'"{self.name}" cannot decompose into itself.')
        decomposition = frozenset(constraints)
        if not decomposition:
            raise ConstraintDefinitionError(f'Empty decomposition for "{self.name}".')
        if decomposition not in self.decompositions:
            self.decompositions.append(decomposition)

    def formulas(self) -> Iterator[Formula]:
        """All formulas, by priority (declaration order on ties)."""
        self._sort_if_dirty()
        return iter(tuple(self._formulas))

    def applicable_formulas(self, fixed: Iterable[Field]) -> Iterator[Formula]:
        """
        Formulas that do not overwrite any fixed field, fewest fixed
        dependencies first, then by priority.
        """
        self._sort_if_dirty()
        fixed = frozenset(fixed)
        candidates = [f for f in self._formulas if f.computes.isdisjoint(fixed)]
        # sort is stable, so equal keys keep priority/declaration order
        candidates.sort(key=lambda f: (len(f.dependencies & fixed), f.priority))
        yield from candidates

    def _sort_if_dirty(self) -> None:
        if not self._dirty_order:
            return
        self._formulas.sort(key=lambda f: f.priority)
        self._dirty_order = False
