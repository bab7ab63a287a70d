# -----------------------------------------------------------------------------
# Formula: one closed-form way of satisfying an equation
# Purpose:
#   Wrap a pure function that computes a fixed set of fields from a fixed set
#   of other fields. Formulas are attached to a Constraint, which checks that
#   dependencies + computes cover exactly its fields.
# Checks:
#   When config.DEBUG_ASSERTIONS is on, every call verifies that the inputs
#   are present and that the result holds exactly the declared fields.
# -----------------------------------------------------------------------------

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Union

from . import config
from .types import Field, FieldSet, State, Values
from .units import as_quantity


class FormulaDefinitionError(Exception): pass


class FormulaIOError(Exception):
    """A formula was called with missing inputs or returned the wrong fields."""
    reason = "Formula I/O mismatch"

    def __init__(self, fields: Iterable[Field]):
        self.fields: FieldSet = frozenset(fields)
        super().__init__(f"{self.reason}: {', '.join(sorted(self.fields))}.")

class MissingDependencies(FormulaIOError):
    reason = "Missing dependencies"

class MissingResults(FormulaIOError):
    reason = "Missing results"

class SuperfluousResults(FormulaIOError):
    reason = "Superfluous results"


@dataclass(frozen=True, eq=False)
class Formula:
    """
    Computes `computes` from `dependencies`.
    - fn: pure function State -> Values; it may receive the whole state
    - priority: tie-breaker when ordering candidates, lower is tried first
    - label: diagnostic text, defaults to "deps -> computes"
    Formulas compare and hash by identity so they can key error maps.
    """
    dependencies: FieldSet
    computes: FieldSet
    fn: Callable[[State], Values] = field(repr=False)
    priority: int = 0
    label: str = ""

    def __post_init__(self):
        object.__setattr__(self, "dependencies", frozenset(self.dependencies))
        object.__setattr__(self, "computes", frozenset(self.computes))
        if not self.computes:
            raise FormulaDefinitionError("Formula must compute at least one field.")
        overlap = self.dependencies & self.computes
        if overlap:
            raise FormulaDefinitionError(
                f"Formula depends on fields it computes: {', '.join(sorted(overlap))}."
            )
        if not self.label:
            deps = ", ".join(sorted(self.dependencies))
            outs = ", ".join(sorted(self.computes))
            object.__setattr__(self, "label", f"{deps} -> {outs}")

    def __str__(self) -> str:
        return self.label

    @staticmethod
    def create(
        dependencies: Iterable[Field],
        computes: Union[Field, Iterable[Field]],
        fn: Callable[[State], Any],
        priority: int = 0,
        label: str = "",
    ) -> "Formula":
        """
        Build a formula.
        - computes as a single field name: fn returns that one value
        - computes as a collection: fn returns a mapping field -> value
        Bare numbers in results become dimensionless quantities.
        """
        if isinstance(computes, str):
            name = computes

            def single(state: State) -> Values:
                return {name: as_quantity(fn(state))}

            return Formula(frozenset(dependencies), frozenset([name]), single, priority, label)

        def multi(state: State) -> Values:
            return {k: as_quantity(v) for k, v in fn(state).items()}

        return Formula(frozenset(dependencies), frozenset(computes), multi, priority, label)

    def compute(self, state: State, check: Optional[bool] = None) -> Values:
        """
        Run the formula on `state` (which may hold more than the dependencies).
        `check` overrides config.DEBUG_ASSERTIONS for this call.
        """
        if check is None:
            check = config.DEBUG_ASSERTIONS
        if check:
            missing = self.dependencies - state.keys()
            if missing:
                raise MissingDependencies(missing)

        results = self.fn(state)

        if check:
            names = set(results.keys())
            missing = self.computes - names
            if missing:
                raise MissingResults(missing)
            superfluous = names - self.computes
            if superfluous:
                raise SuperfluousResults(superfluous)
        return results
