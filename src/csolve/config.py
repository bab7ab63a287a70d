# -----------------------------------------------------------------------------
# Runtime configuration
# Loads .env (if present) and exposes the solver switches as module constants.
# Read the attributes at call time (config.DEBUG_ASSERTIONS) so tests can
# monkeypatch them.
# -----------------------------------------------------------------------------

from __future__ import annotations
import os
from dotenv import load_dotenv

load_dotenv()

_TRUE = {"1", "true", "yes", "on"}


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUE


# Check formula inputs/outputs against their declared fields on every call.
DEBUG_ASSERTIONS = _flag("CSOLVE_DEBUG_ASSERTIONS", True)

# Record a trace of every solve and emit it through the solver logger.
DEBUG_SOLVE = _flag("CSOLVE_DEBUG_SOLVE", False)

# Upper bound on recursive search steps per solve.
MAX_STEPS = int(os.getenv("CSOLVE_MAX_STEPS", "1000"))

# Catalog served by the API (relative paths resolve against the project root).
CATALOG_PATH = os.getenv("CATALOG_PATH", "examples/led_driver.yaml")

# Where `python -m api.main` serves the API.
API_HOST = os.getenv("API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("API_PORT", "8000"))
