"""
Unit tests for the Value model.
"""

import datetime

import pytest

from deploy_helper.engine.errors import FilterError, JsonDecodeError
from deploy_helper.engine.values import (
    ValueKind,
    describe,
    display,
    from_config,
    from_json,
    kind_of,
)


class TestKindOf:
    """Tests for value kinds."""

    @pytest.mark.parametrize("value,kind", [
        (None, ValueKind.NULL),
        (True, ValueKind.BOOL),
        (3, ValueKind.NUMBER),
        (2.5, ValueKind.NUMBER),
        ("x", ValueKind.STRING),
        ([1], ValueKind.LIST),
        ({"a": 1}, ValueKind.MAP),
    ])
    def test_kinds(self, value, kind):
        assert kind_of(value) == kind

    def test_bool_is_not_number(self):
        assert kind_of(False) == ValueKind.BOOL

    def test_non_value_raises(self):
        with pytest.raises(TypeError):
            kind_of(object())

    def test_describe_falls_back_to_type_name(self):
        assert describe({"a": 1}) == "map"
        assert describe(object()) == "object"


class TestFromConfig:
    """Tests for YAML node conversion."""

    def test_scalars_pass_through(self):
        assert from_config("a") == "a"
        assert from_config(1) == 1
        assert from_config(None) is None

    def test_nested_structures(self):
        node = {"a": [1, {"b": (2, 3)}]}
        assert from_config(node) == {"a": [1, {"b": [2, 3]}]}

    def test_non_string_keys_are_stringified(self):
        assert from_config({1: "one", False: "no"}) == {"1": "one", "false": "no"}

    def test_dates_become_iso_strings(self):
        assert from_config(datetime.date(2024, 1, 2)) == "2024-01-02"

    def test_key_order_is_preserved(self):
        converted = from_config({"z": 1, "a": 2, "m": 3})
        assert list(converted) == ["z", "a", "m"]


class TestFromJson:
    """Tests for JSON decoding."""

    def test_decodes_nested_document(self):
        text = '{"server": {"ports": [80, 443], "tls": true, "owner": null}}'
        assert from_json(text) == {
            "server": {"ports": [80, 443], "tls": True, "owner": None}
        }

    def test_scalar_documents(self):
        assert from_json("42") == 42
        assert from_json('"hi"') == "hi"

    def test_invalid_json_raises(self):
        with pytest.raises(JsonDecodeError) as exc_info:
            from_json("{not json")
        assert exc_info.value.filter_name == "from_json"
        assert isinstance(exc_info.value, FilterError)

    def test_non_string_input_raises(self):
        with pytest.raises(JsonDecodeError, match="expected a string"):
            from_json({"already": "parsed"})


class TestDisplay:
    """Tests for the interpolation form of values."""

    def test_string_is_literal(self):
        assert display("plain") == "plain"

    def test_null_is_empty(self):
        assert display(None) == ""

    def test_scalars_use_json_spelling(self):
        assert display(True) == "true"
        assert display(7) == "7"

    def test_collections_render_as_json(self):
        assert display([1, "a"]) == '[1,"a"]'
        assert display({"k": "v", "n": [1, 2]}) == '{"k":"v","n":[1,2]}'

    def test_non_ascii_is_kept(self):
        assert display(["héllo"]) == '["héllo"]'
