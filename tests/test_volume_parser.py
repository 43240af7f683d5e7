import pytest

from basket_matcher.core.volume_parser import (
    calculate_units_needed,
    convert_to_comparable,
    display_quantity,
    normalize_unit,
    parse_volume,
)
from basket_matcher.models.product import ParsedQuantity, Unit


@pytest.mark.parametrize(
    "text, amount, unit",
    [
        ("500g", 500, Unit.G),
        ("2x100ml", 200, Unit.ML),
        ("2 × 100 ml", 200, Unit.ML),
        ("ca. 3kg", 3, Unit.KG),
        ("1,5 l", 1.5, Unit.L),
        ("Bio Eier 10 Stück", 10, Unit.PIECE),
        ("Frische Vollmilch 3,5% 1l", 1, Unit.L),
        ("Weizenmehl Type 405 1kg", 1, Unit.KG),
        ("500 gramm", 500, Unit.G),
        ("2 kilo", 2, Unit.KG),
        ("Hackfleisch 200gr", 200, Unit.G),
        ("2x125gr", 250, Unit.G),
        ("2piece", 2, Unit.PIECE),
        ("6 pieces", 6, Unit.PIECE),
    ],
)
def test_parse_volume(text, amount, unit):
    assert parse_volume(text) == ParsedQuantity(amount=amount, unit=unit)


def test_parse_volume_unparsable():
    assert parse_volume("Tofu natur") is None
    assert parse_volume("") is None
    assert parse_volume(None) is None


def test_parse_volume_rejects_zero_amount():
    assert parse_volume("0g") is None


def test_units_needed_is_ceiling_division():
    assert calculate_units_needed(650, "g", 500, "g") == 2
    assert calculate_units_needed(1000, "g", 500, "g") == 2
    assert calculate_units_needed(100, "g", 500, "g") == 1


def test_units_needed_pieces():
    assert calculate_units_needed(1, "piece", 1, "piece") == 1
    assert calculate_units_needed(12, Unit.PIECE, 10, "stück") == 2


def test_units_needed_converts_units():
    assert calculate_units_needed(1, "kg", 500, "g") == 2
    assert calculate_units_needed(2, "l", 500, "ml") == 4
    # 0.3 kg / 100 g must not pick up float noise
    assert calculate_units_needed(0.3, "kg", 100, "g") == 3


def test_units_needed_incompatible_units():
    assert calculate_units_needed(1, "piece", 200, "g") is None
    assert calculate_units_needed(500, "g", 10, "piece") is None


def test_units_needed_non_positive_pack():
    assert calculate_units_needed(500, "g", 0, "g") is None


def test_normalize_unit():
    assert normalize_unit("Stück") == Unit.PIECE
    assert normalize_unit("KG") == Unit.KG
    assert normalize_unit("liter") == Unit.L
    assert normalize_unit(Unit.ML) == Unit.ML
    assert normalize_unit("bunch") is None
    assert normalize_unit(None) is None


def test_convert_to_comparable():
    assert convert_to_comparable(2, "l") == 2000
    assert convert_to_comparable(1.5, Unit.KG) == 1500
    assert convert_to_comparable(3, "piece") is None


def test_display_quantity():
    assert display_quantity(1000, "g") == (1.0, "kg")
    assert display_quantity(1500, "ml") == (1.5, "l")
    assert display_quantity(750, "ml") == (750, "ml")
    assert display_quantity(2, Unit.PIECE) == (2, "piece")
