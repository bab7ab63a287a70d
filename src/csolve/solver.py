# -----------------------------------------------------------------------------
# Solver: backtracking search over a set of constraints
# Responsibilities:
#   • Hold the constraints of one equation network (ConstraintSet)
#   • Given the fields that just changed and the locked fields, find an
#     ordered plan of formulas that makes every touched equation hold again
#     without writing any changed or locked field
#   • Pull in further constraints whenever a formula writes one of their fields
#   • Fall back to decompositions when a constraint has no usable formula
#   • Report why no plan exists as a tree of ConstraintErrors
# Search state is persistent (tuples/frozensets) so sibling branches never see
# each other's tentative choices. Branches report Solved/Failed values instead
# of raising; only the final failure is raised to the caller.
# -----------------------------------------------------------------------------

from __future__ import annotations
import logging
from collections.abc import MutableSet
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Set, Tuple, Union

from . import config
from .constraint import Constraint
from .formula import Formula
from .tracer import Tracer
from .types import Field, FieldSet, Values

logger = logging.getLogger(__name__)


class ConstraintError(Exception):
    """Expected failure of a solve: no plan satisfies the constraints."""


class OverconstrainedError(ConstraintError):
    def __init__(self, constraint: Constraint):
        self.constraint = constraint
        super().__init__(
            f'Cannot apply constraint "{constraint.name}" because all fields '
            f'{", ".join(sorted(constraint.fields))} are fixed.'
        )


class MissingFormulaError(ConstraintError):
    def __init__(self, constraint: Constraint, fixed: Iterable[Field]):
        self.constraint = constraint
        self.fixed: FieldSet = frozenset(fixed)
        free = sorted(constraint.fields - self.fixed)
        super().__init__(
            f'Missing formula for applying "{constraint.name}" on '
            f'{", ".join(sorted(constraint.fields))} where {", ".join(free)} are free.'
        )


class UnapplicableFormulasError(ConstraintError):
    def __init__(self, constraint: Constraint, errors: Dict[Formula, ConstraintError]):
        self.constraint = constraint
        self.errors = errors
        super().__init__(
            f'Cannot apply constraint "{constraint.name}" because all formulas result '
            f'in an invalid state.' + _bullets(errors.values())
        )


class UnapplicableConstraintsError(ConstraintError):
    def __init__(self, errors: Dict[Constraint, ConstraintError]):
        self.errors = errors
        super().__init__("All constraints result in an invalid state." + _bullets(errors.values()))


class StepLimitExceeded(RuntimeError):
    """The search ran out of steps. Not a ConstraintError: never backtracked."""

    def __init__(self, max_steps: int):
        self.max_steps = max_steps
        super().__init__(f"Solve reached the maximum of {max_steps} steps.")


def _bullets(errors: Iterable[Exception]) -> str:
    return "".join("\n - " + str(e).replace("\n", "\n   ") for e in errors)


@dataclass(frozen=True)
class Solved:
    plan: Tuple[Formula, ...]

@dataclass(frozen=True)
class Failed:
    error: ConstraintError

Outcome = Union[Solved, Failed]


def _without(items: Tuple[Constraint, ...], item: Constraint) -> Tuple[Constraint, ...]:
    return tuple(c for c in items if c is not item)

def _union(items: Tuple[Constraint, ...], extra: Iterable[Constraint]) -> Tuple[Constraint, ...]:
    return items + tuple(c for c in extra if c not in items)


class ConstraintSet(MutableSet):
    """
    Insertion-ordered set of constraints. The order is the order in which the
    search tries them, so identical definitions always give identical plans.
    """

    def __init__(self, constraints: Iterable[Constraint] = (), max_steps: Optional[int] = None):
        self._items: Dict[Constraint, None] = dict.fromkeys(constraints)
        # None -> config.MAX_STEPS at solve time
        self.max_steps = max_steps

    def __contains__(self, item: object) -> bool:
        return item in self._items

    def __iter__(self) -> Iterator[Constraint]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"ConstraintSet({[c.name for c in self._items]!r})"

    def add(self, constraint: Constraint) -> None:
        self._items[constraint] = None

    def discard(self, constraint: Constraint) -> None:
        self._items.pop(constraint, None)

    def solve(
        self,
        changed: Iterable[Field],
        fixed: Iterable[Field],
        trace: Optional[Tracer] = None,
    ) -> List[Formula]:
        """
        Plan the formulas to apply after `changed` fields got new values while
        `fixed` fields are locked. Neither set is ever written by the plan.

        Raises ConstraintError when no plan exists and StepLimitExceeded when
        the search runs away.
        """
        changed = frozenset(changed)
        fixed = frozenset(fixed)
        own_trace = trace is None and config.DEBUG_SOLVE
        if own_trace:
            trace = Tracer()

        max_steps = self.max_steps if self.max_steps is not None else config.MAX_STEPS
        search = _Search(self, max_steps, trace)
        # Only equations touching a changed field need attention up front;
        # others join once a formula writes one of their fields.
        initial = tuple(c for c in self if not c.fields.isdisjoint(changed))
        if trace is not None:
            trace.add("solve", {"changed": sorted(changed), "fixed": sorted(fixed)})
        try:
            outcome = search.step(initial, changed | fixed, (), frozenset(), frozenset(self))
        finally:
            if own_trace:
                logger.debug("Solve trace:\n%s", trace.render())

        if isinstance(outcome, Failed):
            logger.debug("No plan for change of %s after %d steps", sorted(changed), search.steps)
            raise outcome.error
        logger.debug(
            "Plan for change of %s: %s (%d steps)",
            sorted(changed), [f.label for f in outcome.plan], search.steps,
        )
        return list(outcome.plan)


class _Search:
    """One solve invocation: step budget, ordering and the recursive search."""

    def __init__(self, constraints: ConstraintSet, max_steps: int, trace: Optional[Tracer]):
        self.index = {c: i for i, c in enumerate(constraints)}
        self.max_steps = max_steps
        self.steps = 0
        self.trace = trace

    def _ordered(self, constraints: Iterable[Constraint]) -> List[Constraint]:
        return sorted(constraints, key=lambda c: (self.index.get(c, len(self.index)), c.name))

    def _note(self, kind: str, depth: int, **detail: Any) -> None:
        if self.trace is not None:
            self.trace.add(kind, detail, depth)

    def step(
        self,
        remaining: Tuple[Constraint, ...],
        fixed: FieldSet,
        plan: Tuple[Formula, ...],
        fulfilled: FrozenSet[Constraint],
        pool: FrozenSet[Constraint],
        depth: int = 0,
    ) -> Outcome:
        """
        remaining: constraints still to satisfy
        fixed: fields that must not be written any more
        plan: formulas chosen so far
        fulfilled: constraints proven satisfied
        pool: constraints that may still be pulled into `remaining`
        """
        self.steps += 1
        if self.steps > self.max_steps:
            logger.error("Solve reached maximum steps (%d)", self.max_steps)
            raise StepLimitExceeded(self.max_steps)
        if not remaining:
            return Solved(plan)

        self._note("step", depth, remaining=[c.name for c in remaining], fixed=sorted(fixed))

        errors: Dict[Constraint, ConstraintError] = {}
        for constraint in remaining:
            outcome = self._try_constraint(
                constraint, _without(remaining, constraint), fixed, plan, fulfilled, pool, depth
            )
            if isinstance(outcome, Solved):
                return outcome
            errors[constraint] = outcome.error
        return Failed(UnapplicableConstraintsError(errors))

    def _try_constraint(
        self,
        constraint: Constraint,
        rest: Tuple[Constraint, ...],
        fixed: FieldSet,
        plan: Tuple[Formula, ...],
        fulfilled: FrozenSet[Constraint],
        pool: FrozenSet[Constraint],
        depth: int,
    ) -> Outcome:
        if constraint in fulfilled:
            self._note("skip", depth, constraint=constraint.name)
            return self.step(rest, fixed, plan, fulfilled, pool, depth + 1)

        if constraint.fields <= fixed:
            # nothing left to adjust and nobody proved it holds
            return Failed(OverconstrainedError(constraint))

        formulas = list(constraint.applicable_formulas(fixed))
        if not formulas:
            return self._decompose(constraint, rest, fixed, plan, fulfilled, pool, depth)

        new_pool = pool - {constraint}
        errors: Dict[Formula, ConstraintError] = {}
        for formula in formulas:
            self._note("compute", depth, constraint=constraint.name, formula=formula.label)
            # every equation reading a field we now write has to hold again
            pulled = self._ordered(c for c in new_pool if not c.fields.isdisjoint(formula.computes))
            outcome = self.step(
                _union(rest, pulled),
                # fix the whole equation so nothing can un-satisfy it later
                fixed | constraint.fields,
                plan + (formula,),
                fulfilled | {constraint},
                new_pool,
                depth + 1,
            )
            if isinstance(outcome, Solved):
                return outcome
            errors[formula] = outcome.error
        return Failed(UnapplicableFormulasError(constraint, errors))

    def _decompose(
        self,
        constraint: Constraint,
        rest: Tuple[Constraint, ...],
        fixed: FieldSet,
        plan: Tuple[Formula, ...],
        fulfilled: FrozenSet[Constraint],
        pool: FrozenSet[Constraint],
        depth: int,
    ) -> Outcome:
        for decomposition in constraint.decompositions:
            # members untouched by any fixed field contribute nothing yet
            extra = [
                c for c in self._ordered(decomposition - fulfilled)
                if not c.fields.isdisjoint(fixed)
            ]
            if not pool.issuperset(extra):
                # a member is being resolved elsewhere; using it here could loop
                continue
            new_pool = pool - {constraint}
            if not extra:
                self._note("decompose", depth, constraint=constraint.name, into=[])
                return self.step(rest, fixed, plan, fulfilled | {constraint}, new_pool, depth + 1)
            self._note("decompose", depth, constraint=constraint.name, into=[c.name for c in extra])
            return self.step(_union(rest, extra), fixed, plan, fulfilled, new_pool, depth + 1)

        return Failed(MissingFormulaError(constraint, fixed))


def apply_plan(plan: Iterable[Formula], state: Mapping[Field, Any]) -> Tuple[Values, Set[Field]]:
    """
    Run `plan` in order on a copy of `state`, merging each result before the
    next formula runs. Returns (new_state, fields written).
    """
    new_state: Values = dict(state)
    written: Set[Field] = set()
    for formula in plan:
        results = formula.compute(new_state)
        new_state.update(results)
        written.update(results)
    return new_state, written
