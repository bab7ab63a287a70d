# -----------------------------------------------------------------------------
# Catalog loader & accessor
# Purpose: Parse a YAML description of an equation network (fields →
# constraints → formulas → decompositions) into Constraint objects and a
# ConstraintSet ready for solving.
# - Schema checked with pydantic; any problem surfaces as CatalogError.
# - Formula expressions are compiled by safe_eval and evaluated on Quantities.
# -----------------------------------------------------------------------------

from __future__ import annotations
import yaml
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set, Union
from pydantic import BaseModel, Field, ValidationError

from .constraint import Constraint, ConstraintDefinitionError
from .formula import Formula, FormulaDefinitionError
from .safe_eval import ExpressionError, compile_expr, safe_eval
from .solver import ConstraintSet
from .types import FieldSpec
from .units import UnitError, parse_quantity

# Domain-specific error to signal malformed catalog inputs, unknown ids, etc.
class CatalogError(Exception): pass


# ---- YAML schema --------------------------------------------------------------

class FieldModel(BaseModel):
    value: Union[str, float] = "0"
    label: str = ""
    locked: bool = False
    recompute: bool = False

class FormulaModel(BaseModel):
    # one field with one expression, or several fields with one expression each
    computes: Union[str, List[str]]
    expr: Union[str, Dict[str, str]]
    priority: int = 0

class ConstraintModel(BaseModel):
    id: str
    name: str = ""
    field_names: List[str] = Field(alias="fields")
    formulas: List[FormulaModel] = Field(default_factory=list)
    decompositions: List[List[str]] = Field(default_factory=list)

class CatalogModel(BaseModel):
    field_specs: Dict[str, FieldModel] = Field(default_factory=dict, alias="fields")
    constraints: List[ConstraintModel] = Field(default_factory=list)


def _expr_formula(c: ConstraintModel, fm: FormulaModel) -> Formula:
    """Turn one catalog formula into a Formula over the constraint's fields."""
    computes = [fm.computes] if isinstance(fm.computes, str) else list(fm.computes)
    deps = sorted(set(c.field_names) - set(computes))

    if isinstance(fm.expr, str):
        if len(computes) != 1:
            raise CatalogError(f"{c.id}: a single expr can only compute one field, got {computes}")
        exprs = {computes[0]: fm.expr}
    else:
        exprs = dict(fm.expr)
        if set(exprs) != set(computes):
            raise CatalogError(f"{c.id}: expr keys {sorted(exprs)} do not match computes {sorted(computes)}")

    try:
        codes = {name: compile_expr(text, deps) for name, text in exprs.items()}
    except ExpressionError as e:
        raise CatalogError(f"{c.id}: {e}") from e

    def fn(state):
        env = {name: state[name] for name in deps}
        return {name: safe_eval(code, env) for name, code in codes.items()}

    label = "; ".join(f"{name} = {text}" for name, text in exprs.items())
    return Formula.create(deps, computes, fn, priority=fm.priority, label=label)


@dataclass
class Catalog:
    # Declared fields keyed by name (may be empty for constraint-only catalogs)
    fields: Dict[str, FieldSpec]
    # Constraints keyed by catalog id, in file order
    constraints: Dict[str, Constraint]

    @staticmethod
    def from_yaml_dict(d: Dict[str, Any]) -> "Catalog":
        """
        Build a Catalog from a pre-parsed YAML dictionary.
        Expected shape:
          fields:
            v_in: { value: "20 V", label: "Input Voltage", locked: false }
            i_led: { value: "0 mA", recompute: true }
          constraints:
            - id: sense
              name: "v_s = r_s * i_led"
              fields: [i_led, r_s, v_s]
              formulas:
                - { computes: i_led, expr: "v_s / r_s" }
                - { computes: [a, b], expr: { a: "...", b: "..." }, priority: 1 }
              decompositions: [[other_id, third_id]]
        """
        try:
            model = CatalogModel.model_validate(d or {})
        except ValidationError as e:
            raise CatalogError(f"Invalid catalog: {e}") from e

        # ---- Fields ------------------------------------------------------------
        fields: Dict[str, FieldSpec] = {}
        for name, fm in model.field_specs.items():
            try:
                value = parse_quantity(str(fm.value))
            except UnitError as e:
                raise CatalogError(f"Field {name}: {e}") from e
            fields[name] = FieldSpec(name=name, value=value, label=fm.label,
                                     locked=fm.locked, recompute=fm.recompute)

        # ---- Constraints & formulas -------------------------------------------
        constraints: Dict[str, Constraint] = {}
        for cm in model.constraints:
            if cm.id in constraints:
                raise CatalogError(f"Duplicate constraint id: {cm.id}")
            if fields:
                undeclared = sorted(set(cm.field_names) - set(fields))
                if undeclared:
                    raise CatalogError(f"{cm.id}: undeclared fields {', '.join(undeclared)}")
            try:
                constraint = Constraint.create(cm.name or cm.id, cm.field_names)
                for fm in cm.formulas:
                    constraint.add_formula(_expr_formula(cm, fm))
            except (ConstraintDefinitionError, FormulaDefinitionError) as e:
                raise CatalogError(f"{cm.id}: {e}") from e
            constraints[cm.id] = constraint

        # ---- Decompositions (may reference constraints declared later) ---------
        for cm in model.constraints:
            for ids in cm.decompositions:
                unknown = [i for i in ids if i not in constraints]
                if unknown:
                    raise CatalogError(f"{cm.id}: unknown constraints in decomposition: {', '.join(unknown)}")
                try:
                    constraints[cm.id].add_decomposition(*(constraints[i] for i in ids))
                except ConstraintDefinitionError as e:
                    raise CatalogError(f"{cm.id}: {e}") from e

        return Catalog(fields=fields, constraints=constraints)

    @staticmethod
    def from_yaml_text(text: str) -> "Catalog":
        """Parse raw YAML text (safe_load, no arbitrary constructors)."""
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise CatalogError(f"Invalid YAML: {e}") from e
        return Catalog.from_yaml_dict(data)

    @staticmethod
    def from_file(path: str) -> "Catalog":
        with open(path, "r", encoding="utf-8") as f:
            return Catalog.from_yaml_text(f.read())

    def constraint_set(self, max_steps: Optional[int] = None) -> ConstraintSet:
        return ConstraintSet(self.constraints.values(), max_steps=max_steps)

    def initial_values(self) -> Dict[str, Any]:
        return {name: spec.value for name, spec in self.fields.items()}

    def locked_fields(self) -> Set[str]:
        return {name for name, spec in self.fields.items() if spec.locked}

    def recompute_fields(self) -> Set[str]:
        return {name for name, spec in self.fields.items() if spec.recompute}

    def constraint_id(self, constraint: Constraint) -> Optional[str]:
        for cid, c in self.constraints.items():
            if c is constraint:
                return cid
        return None

    def list_constraints(self) -> List[Dict[str, Any]]:
        """
        Flattened, JSON-friendly listing of the constraints
        (id, name, fields, formula labels, decompositions as id lists).
        """
        out = []
        for cid, c in self.constraints.items():
            out.append({
                "id": cid,
                "name": c.name,
                "fields": sorted(c.fields),
                "formulas": [f.label for f in c.formulas()],
                "decompositions": [sorted(self.constraint_id(m) or m.name for m in d)
                                   for d in c.decompositions],
            })
        return out
