# -----------------------------------------------------------------------------
# Tracing utility
# Purpose:
#   Append-only record of the decisions a solve makes (which constraint was
#   tried, which formula committed, where it backtracked). Exports plain
#   dicts for JSON responses and an indented text view for logs.
# -----------------------------------------------------------------------------

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Dict, Any

@dataclass
class TraceStep:
    # kind: short label ("step", "compute", ...); depth: recursion level
    kind: str
    detail: Dict[str, Any]
    depth: int = 0

class Tracer:
    def __init__(self): self._steps: List[TraceStep] = []
    def __len__(self) -> int: return len(self._steps)
    def add(self, kind: str, detail: Dict[str, Any], depth: int = 0):
        self._steps.append(TraceStep(kind, detail, depth))
    def kinds(self) -> List[str]: return [s.kind for s in self._steps]
    def steps(self) -> List[Dict[str, Any]]:
        return [{"kind": s.kind, "detail": s.detail, "depth": s.depth} for s in self._steps]
    def render(self) -> str:
        lines = []
        for s in self._steps:
            info = " ".join(f"{k}={v}" for k, v in s.detail.items())
            lines.append(f"{'  ' * s.depth}{s.kind} {info}".rstrip())
        return "\n".join(lines)
