"""
deploy-helper Value Model

Values are plain JSON-like Python objects: None, bool, int/float, str,
list and dict (insertion ordered). This module names the kinds, converts
parsed YAML into values, decodes JSON, and produces the display form used
when a value is interpolated into a larger string.
"""

import datetime
import json
from enum import Enum
from typing import Any, Dict, List, Union

from deploy_helper.engine.errors import JsonDecodeError

Value = Union[None, bool, int, float, str, List[Any], Dict[str, Any]]


class ValueKind(Enum):
    """Kind tag of a Value."""
    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    LIST = "list"
    MAP = "map"


def kind_of(value: Any) -> ValueKind:
    """Return the kind of a value; raises TypeError for non-values."""
    if value is None:
        return ValueKind.NULL
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, list):
        return ValueKind.LIST
    if isinstance(value, dict):
        return ValueKind.MAP
    raise TypeError(f"Not a value: {type(value).__name__}")


def describe(value: Any) -> str:
    """Short human description of a value for error messages."""
    try:
        return kind_of(value).value
    except TypeError:
        return type(value).__name__


def from_config(node: Any) -> Value:
    """
    Convert a parsed YAML node into a Value.

    Total: every input produces a value. Mapping keys are stringified,
    tuples/sets become lists, dates become ISO strings and any other
    unknown scalar becomes its str().
    """
    if node is None or isinstance(node, (bool, int, float, str)):
        return node
    if isinstance(node, dict):
        return {
            key if isinstance(key, str) else display(from_config(key)): from_config(value)
            for key, value in node.items()
        }
    if isinstance(node, (list, tuple, set, frozenset)):
        return [from_config(item) for item in node]
    if isinstance(node, (datetime.date, datetime.datetime)):
        return node.isoformat()
    if isinstance(node, bytes):
        return node.decode('utf-8', errors='replace')
    return str(node)


def from_json(text: Any) -> Value:
    """
    Decode JSON text into a Value.

    Raises:
        JsonDecodeError: if text is not a string or is not valid JSON
    """
    if not isinstance(text, str):
        raise JsonDecodeError(f"expected a string, got {describe(text)}", text)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise JsonDecodeError(str(e), text)


def display(value: Any) -> str:
    """
    Canonical string form of a value for interpolation.

    Strings render literally, None renders empty, bools and numbers in
    their JSON spelling, lists and maps as JSON text.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, int, float, list, dict)):
        return json.dumps(value, ensure_ascii=False, separators=(',', ':'))
    return str(value)
