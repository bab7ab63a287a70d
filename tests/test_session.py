from pathlib import Path

import pytest

from csolve.catalog import Catalog
from csolve.session import ConstrainedState, NoComputationError
from csolve.units import q

LED_CATALOG = Path(__file__).parent.parent / "examples" / "led_driver.yaml"


def _ohm_state(ohms_law, **locked):
    values = {"i": q(2, "A"), "r": q(5, "ohm"), "v": q(10, "V")}
    return ConstrainedState([ohms_law], values, locked=[k for k, v in locked.items() if v])

def test_set_value_recomputes_and_keeps_units(ohms_law):
    state = _ohm_state(ohms_law)
    written = state.set_value("r", q(7, "ohm"))
    assert written == {"v"}
    assert str(state.values["v"].units) == "volt"
    assert state.values["v"].magnitude == pytest.approx(14)
    assert state.values["i"].to("A").magnitude == pytest.approx(2)

def test_lock_changes_plan(ohms_law):
    state = _ohm_state(ohms_law)
    assert state.computation("r").changes == {"v"}
    state.lock("v")
    assert state.computation("r").changes == {"i"}
    state.set_value("r", q(4, "ohm"))
    assert state.values["i"].to("A").magnitude == pytest.approx(2.5)
    state.unlock("v")
    assert state.locked == frozenset()
    assert state.computation("r").changes == {"v"}

def test_blocked_fields(ohms_law):
    state = _ohm_state(ohms_law, i=True, v=True)
    assert state.blocked() == {"r"}
    assert state.computation("r") is None
    with pytest.raises(NoComputationError):
        state.set_value("r", q(1, "ohm"))
    with pytest.raises(KeyError):
        state.set_value("x", q(1))

def test_led_session_derives_placeholders():
    cat = Catalog.from_file(str(LED_CATALOG))
    state = ConstrainedState.from_catalog(cat)
    v = {name: val.to_base_units().magnitude for name, val in state.values.items()}

    i_led = 0.1 / 0.15
    ripple = 0.26 * i_led
    t_on = 47e-6 * ripple / (20 - 3.4 - i_led * (0.15 + 0.3 + 0.2))
    t_off = 47e-6 * ripple / (3.4 + 0.45 + i_led * (0.15 + 0.3))
    assert v["i_led"] == pytest.approx(i_led, rel=1e-6)
    assert v["ripple"] == pytest.approx(ripple, rel=1e-6)
    assert v["t_on"] == pytest.approx(t_on, rel=1e-6)
    assert v["t_off"] == pytest.approx(t_off, rel=1e-6)
    assert v["d"] == pytest.approx(t_on / (t_on + t_off), rel=1e-6)
    assert v["f_sw"] == pytest.approx(1 / (t_on + t_off), rel=1e-6)

    # stored in the units the catalog declared
    assert str(state.values["i_led"].units) == "milliampere"
    assert str(state.values["f_sw"].units) == "kilohertz"
    # inputs untouched
    assert state.values["v_in"].to("V").magnitude == pytest.approx(20)
    assert state.locked == {"v_s", "ripple_mult", "r_lx"}
