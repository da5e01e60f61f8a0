"""Tests for constant-expression folding."""

import pytest

from phpapidoc.api.values import php_type_name, to_json


@pytest.fixture
def values_record(extract):
    """Class whose constants cover the foldable expression forms."""
    return extract(
        r"""<?php
namespace Docs;

use Other\Thing;

class Values
{
    const HEX = 0x1F;
    const BIN = 0b101;
    const OCT = 017;
    const UNDERSCORE = 1_000;
    const FLOAT = 1.5;
    const NEG = -3;
    const STR = 'it\'s';
    const DQ = "a\tb";
    const CONCAT = 'a' . 'b';
    const MATH = (2 + 3) * 4;
    const DIV = 7 / 2;
    const ITEMS = [1, 2, 3];
    const MAPPING = ['a' => 1, 'b' => [true, null]];
    const COND = true ? 'yes' : 'no';
    const COALESCE = null ?? 5;
    const CLS = Thing::class;
    const NONE = null;
    const OTHER = self::HEX;
}
"""
    )


class TestConstantFolding:
    """Tests for folded constant values."""

    @pytest.mark.parametrize(
        "name,value,type_name",
        [
            ("HEX", "31", "integer"),
            ("BIN", "5", "integer"),
            ("OCT", "15", "integer"),
            ("UNDERSCORE", "1000", "integer"),
            ("FLOAT", "1.5", "double"),
            ("NEG", "-3", "integer"),
            ("STR", '"it\'s"', "string"),
            ("DQ", '"a\\tb"', "string"),
            ("CONCAT", '"ab"', "string"),
            ("MATH", "20", "integer"),
            ("DIV", "3.5", "double"),
            ("ITEMS", "[1,2,3]", "array"),
            ("MAPPING", '{"a":1,"b":[true,null]}', "array"),
            ("COND", '"yes"', "string"),
            ("COALESCE", "5", "integer"),
            ("CLS", '"Other\\\\Thing"', "string"),
            ("NONE", "null", "NULL"),
        ],
    )
    def test_folded_value(self, values_record, name, value, type_name):
        """Test each foldable constant gets its JSON value and gettype name."""
        constant = values_record.get_constant(name)

        assert constant.value == value
        assert constant.type.type == type_name

    def test_unfoldable_constant(self, values_record):
        """Test a constant referring to another constant has no value."""
        constant = values_record.get_constant("OTHER")

        assert constant.value is None
        assert constant.type.type == "mixed"


class TestValueHelpers:
    """Tests for value helper functions."""

    def test_php_type_name(self):
        """Test gettype names of folded values."""
        assert php_type_name(None) == "NULL"
        assert php_type_name(True) == "boolean"
        assert php_type_name(3) == "integer"
        assert php_type_name(3.0) == "double"
        assert php_type_name("x") == "string"
        assert php_type_name([1]) == "array"
        assert php_type_name({"a": 1}) == "array"

    def test_to_json_is_compact(self):
        """Test JSON text has no padding and keeps unicode."""
        assert to_json({"a": [1, 2]}) == '{"a":[1,2]}'
        assert to_json("é") == '"é"'
