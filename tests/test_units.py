import pytest

from csolve.units import (
    UnitError, as_quantity, convert_like, format_quantity, parse_quantity, q, same_dimension,
)


def test_parse_accepts_ohm_sign():
    r = parse_quantity("150 mΩ")
    assert r.to("ohm").magnitude == pytest.approx(0.15)

def test_parse_plain_number_is_dimensionless():
    assert parse_quantity("0.26").dimensionless

def test_parse_rejects_garbage():
    with pytest.raises(UnitError):
        parse_quantity("12 blorps")
    with pytest.raises(UnitError):
        parse_quantity("")

def test_as_quantity_wraps_numbers_only():
    assert as_quantity(3).dimensionless
    v = q(5, "V")
    assert as_quantity(v) is v
    with pytest.raises(UnitError):
        as_quantity("5 V")

def test_convert_like_keeps_reference_units():
    i = q(10, "V") / q(150, "mohm")
    out = convert_like(i, q(0, "mA"))
    assert str(out.units) == "milliampere"
    assert out.magnitude == pytest.approx(66666.6667)

def test_same_dimension():
    assert same_dimension(q(1, "mV"), q(3, "kV"))
    assert not same_dimension(q(1, "V"), q(1, "A"))

def test_format_quantity():
    assert format_quantity(q(150, "mohm")) == "150 mΩ"
    assert format_quantity(q(0.0025, "A")) == "2.5 mA"
    assert format_quantity(q(0.26)) == "0.26"
