# -----------------------------------------------------------------------------
# Session: value state bound to a constraint network
# Purpose:
#   Keep the current value of every field and the locked set, answer "what
#   would change if this field changed?" and apply plans. This is what a form
#   or an API handler talks to; presentation stays with the caller.
# -----------------------------------------------------------------------------

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Set, Tuple

from .catalog import Catalog
from .constraint import Constraint
from .formula import Formula
from .solver import ConstraintError, ConstraintSet, apply_plan
from .units import as_quantity, convert_like

logger = logging.getLogger(__name__)


class NoComputationError(Exception): pass


@dataclass(frozen=True)
class Computation:
    # plan to run after the field changed, and every field that plan writes
    plan: Tuple[Formula, ...]
    changes: FrozenSet[str]


class ConstrainedState:
    """
    Values + locks over a ConstraintSet.
    - recompute: fields whose initial values are placeholders; they are
      derived from all the other fields right away.
    Plans only depend on the constraints and the locked set, so they are
    cached until a lock changes.
    """

    def __init__(
        self,
        constraints: Iterable[Constraint],
        values: Mapping[str, Any],
        locked: Iterable[str] = (),
        recompute: Iterable[str] = (),
    ):
        self.constraints = constraints if isinstance(constraints, ConstraintSet) else ConstraintSet(constraints)
        self.values: Dict[str, Any] = {name: as_quantity(v) for name, v in values.items()}
        self._locked: Set[str] = set(locked)
        self._computations: Dict[str, Optional[Computation]] = {}

        recompute = set(recompute)
        if recompute:
            plan = self.constraints.solve(set(self.values) - recompute, set())
            self.apply(plan)

    @classmethod
    def from_catalog(cls, catalog: Catalog) -> "ConstrainedState":
        return cls(
            catalog.constraint_set(),
            catalog.initial_values(),
            locked=catalog.locked_fields(),
            recompute=catalog.recompute_fields(),
        )

    @property
    def locked(self) -> FrozenSet[str]:
        return frozenset(self._locked)

    def lock(self, field: str) -> None:
        if field not in self._locked:
            self._locked.add(field)
            self._computations.clear()

    def unlock(self, field: str) -> None:
        if field in self._locked:
            self._locked.discard(field)
            self._computations.clear()

    def computation(self, field: str) -> Optional[Computation]:
        """Plan for a change of `field` under the current locks, None if there is none."""
        if field not in self._computations:
            try:
                plan = tuple(self.constraints.solve({field}, self._locked))
            except ConstraintError as e:
                logger.debug("No computation for %s: %s", field, e)
                self._computations[field] = None
            else:
                changes = frozenset(name for f in plan for name in f.computes)
                self._computations[field] = Computation(plan, changes)
        return self._computations[field]

    def blocked(self) -> Set[str]:
        """Fields whose change cannot be propagated with the current locks."""
        return {name for name in self.values if self.computation(name) is None}

    def apply(self, plan: Iterable[Formula]) -> Set[str]:
        """Run a plan on the current values; written fields keep their units."""
        state, written = apply_plan(plan, self.values)
        for name in written:
            self.values[name] = convert_like(state[name], self.values.get(name))
        return written

    def set_value(self, field: str, value: Any) -> Set[str]:
        """
        Store a new value for `field` and recompute everything depending on it.
        Returns the fields the plan wrote.
        """
        if field not in self.values:
            raise KeyError(field)
        comp = self.computation(field)
        if comp is None:
            raise NoComputationError(f"No computation for field {field}")
        self.values[field] = as_quantity(value)
        return self.apply(comp.plan)
