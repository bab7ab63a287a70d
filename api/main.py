# --- Constraint Calculator API (FastAPI) ----------------------------------------
# Purpose: Serve one equation network (a YAML catalog) over HTTP:
#   (1) list its constraints, (2) plan which formulas follow a change, and
#   (3) evaluate a change on a set of values and return the new values.
# ------------------------------------------------------------------------------

from __future__ import annotations
from pathlib import Path
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field
from typing import Dict, List, Optional

from csolve import config
from csolve.catalog import Catalog, CatalogError
from csolve.solver import ConstraintError, apply_plan
from csolve.units import UnitError, convert_like, format_quantity, parse_quantity

PROJECT_ROOT = Path(__file__).parent.parent.resolve()


class PlanRequest(BaseModel):
    changed: List[str]
    fixed: List[str] = Field(default_factory=list)

class PlanStep(BaseModel):
    formula: str
    computes: List[str]

class PlanResponse(BaseModel):
    ok: bool
    steps: List[PlanStep]
    changes: List[str]

class EvaluateRequest(BaseModel):
    # overrides on top of the catalog's initial values, e.g. {"r_s": "220 mΩ"}
    values: Dict[str, str] = Field(default_factory=dict)
    changed: List[str]
    locked: List[str] = Field(default_factory=list)

class EvaluateResponse(BaseModel):
    ok: bool
    values: Dict[str, str]
    changed: List[str]


def load_catalog(path: Optional[str] = None) -> Catalog:
    """Load a catalog (default: CATALOG_PATH); relative paths resolve against the project root."""
    p = Path(path if path is not None else config.CATALOG_PATH)
    if not p.is_absolute():
        p = PROJECT_ROOT / p
    return Catalog.from_file(str(p))


def create_app(catalog: Catalog) -> FastAPI:
    app = FastAPI(title="Constraint Calculator API")
    constraints = catalog.constraint_set()

    # ----------------------------- Routes -------------------------------------
    @app.get("/health")
    def health(): return {"ok": True}

    @app.get("/catalog")
    def list_catalog():
        """List the constraints (fields, formulas, decompositions) of the network."""
        items = catalog.list_constraints()
        return {"count": len(items), "items": items,
                "fields": {name: {"value": format_quantity(spec.value), "label": spec.label,
                                  "locked": spec.locked}
                           for name, spec in catalog.fields.items()}}

    @app.post("/plan", response_model=PlanResponse)
    def plan(req: PlanRequest):
        """
        Which formulas run, in which order, after `changed` fields changed
        while `fixed` fields stay locked. 422 when no plan exists.
        """
        try:
            steps = constraints.solve(set(req.changed), set(req.fixed))
        except ConstraintError as e:
            raise HTTPException(status_code=422, detail=str(e))
        changes = sorted({name for f in steps for name in f.computes})
        return PlanResponse(
            ok=True,
            steps=[PlanStep(formula=f.label, computes=sorted(f.computes)) for f in steps],
            changes=changes,
        )

    @app.post("/evaluate", response_model=EvaluateResponse)
    def evaluate(req: EvaluateRequest):
        """
        Apply a change: start from the catalog values, overlay `values`, plan
        for `changed` under `locked`, run the plan and return every field.
        400 on unparsable values or unknown fields, 422 when no plan exists.
        """
        state = catalog.initial_values()
        for name, text in req.values.items():
            if catalog.fields and name not in catalog.fields:
                raise HTTPException(status_code=400, detail=f"Unknown field: {name}")
            try:
                state[name] = parse_quantity(text)
            except UnitError as e:
                raise HTTPException(status_code=400, detail=str(e))

        try:
            steps = constraints.solve(set(req.changed), set(req.locked))
        except ConstraintError as e:
            raise HTTPException(status_code=422, detail=str(e))

        new_state, written = apply_plan(steps, state)
        for name in written:
            new_state[name] = convert_like(new_state[name], state.get(name))
        return EvaluateResponse(
            ok=True,
            values={name: format_quantity(v) for name, v in new_state.items()},
            changed=sorted(written),
        )

    return app


try:
    _catalog = load_catalog()
except (OSError, CatalogError) as e:
    raise RuntimeError(f"Failed to load catalog from {config.CATALOG_PATH}: {e}") from e

app = create_app(_catalog)


def serve(host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Run the API with uvicorn (install the `api` extra)."""
    import uvicorn
    uvicorn.run(app, host=host or config.API_HOST, port=port or config.API_PORT)


if __name__ == "__main__":
    serve()
