"""
deploy-helper Templating Engine

Jinja2-based templating over the Value model.

A string that is exactly one ``{{ expression }}`` (after trimming) renders
to the expression's Value with its type preserved, so
``"{{ raw | from_json }}"`` yields a dict. Any other string containing
``{{ }}`` renders to a string, each occurrence converted with
``values.display`` and spliced into the surrounding text.
"""

import base64
import functools
import json
import re
from typing import Any, Callable, Dict, Mapping, Optional, Union

import yaml
from jinja2 import Environment, StrictUndefined, Undefined, UndefinedError, nodes
from jinja2 import TemplateSyntaxError as JinjaTemplateSyntaxError
from jinja2.utils import missing

from deploy_helper.engine.errors import (
    DeployHelperError,
    FilterError,
    PropertyAccessError,
    TemplateError,
    TemplateSyntaxError,
    UndefinedVariableError,
    UnknownFilterError,
)
from deploy_helper.engine.scope import Scope
from deploy_helper.engine.values import describe, display, from_json

# Whole-string single expression: "  {{ expr }}  "
_SINGLE_EXPRESSION = re.compile(r'^\s*\{\{(?P<expr>.*)\}\}\s*$', re.DOTALL)


def _filter_default(value: Any, default: Any = '') -> Any:
    """Return default if value is undefined or None."""
    if isinstance(value, Undefined) or value is None:
        return default
    return value


def _filter_bool(value: Any) -> bool:
    """Convert value to boolean."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.lower() in ('true', 'yes', '1', 'on')
    return bool(value)


def _filter_b64decode(value: str) -> str:
    """Decode base64 encoded string."""
    return base64.b64decode(value).decode('utf-8')


def _filter_b64encode(value: str) -> str:
    """Encode string to base64."""
    return base64.b64encode(str(value).encode('utf-8')).decode('utf-8')


# Filter registry: name -> Value transform. Extend with register_filter().
FILTERS: Dict[str, Callable[..., Any]] = {
    'from_json': from_json,
    'to_json': lambda x: json.dumps(x, ensure_ascii=False),
    'to_yaml': lambda x: yaml.safe_dump(x, default_flow_style=False),
    'default': _filter_default,
    'd': _filter_default,
    'lower': lambda x: str(x).lower(),
    'upper': lambda x: str(x).upper(),
    'replace': lambda s, old, new: str(s).replace(old, new),
    'trim': lambda x: str(x).strip(),
    'bool': _filter_bool,
    'int': lambda x: int(x),
    'string': display,
    'length': lambda x: len(x),
    'join': lambda x, sep='': sep.join(display(i) for i in x),
    'first': lambda x: x[0] if x else None,
    'last': lambda x: x[-1] if x else None,
    'b64decode': _filter_b64decode,
    'b64encode': _filter_b64encode,
}

# Filters that receive undefined input instead of failing on it
UNDEFINED_TOLERANT_FILTERS = {'default', 'd'}


def register_filter(name: str, accepts_undefined: bool = False):
    """Decorator to register a filter for engines created afterwards."""
    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        FILTERS[name] = func
        if accepts_undefined:
            UNDEFINED_TOLERANT_FILTERS.add(name)
        else:
            UNDEFINED_TOLERANT_FILTERS.discard(name)
        return func
    return decorator


class ScopeUndefined(StrictUndefined):
    """
    StrictUndefined that fails with the engine's own error types.

    A missing top-level name raises UndefinedVariableError; a missing key,
    index or attribute on an existing value raises PropertyAccessError.
    """

    def __init__(self, hint=None, obj=missing, name=None, exc=UndefinedError):
        super().__init__(hint, obj, name, exc)
        self._undefined_exception = self._make_error

    def _make_error(self, message: str) -> TemplateError:
        if self._undefined_obj is missing:
            return UndefinedVariableError(self._undefined_name or message)
        return PropertyAccessError(describe(self._undefined_obj), self._undefined_name)


def _strict(value: Any) -> Any:
    """Fail on an undefined value, pass anything else through."""
    if isinstance(value, Undefined):
        value._fail_with_undefined_error()
    return value


class ValueEnvironment(Environment):
    """
    Jinja2 environment restricted to the Value model.

    ``.name`` and ``[key]`` only look into maps, ``[int]`` only into lists.
    Python attributes are never exposed, so a JSON key called ``items``
    is the key and not the dict method.
    """

    def getattr(self, obj: Any, attribute: str) -> Any:
        return self._access(obj, attribute)

    def getitem(self, obj: Any, argument: Any) -> Any:
        return self._access(obj, argument)

    def _access(self, obj: Any, key: Any) -> Any:
        _strict(obj)
        if isinstance(obj, dict):
            if isinstance(key, str) and key in obj:
                return obj[key]
        elif isinstance(obj, list):
            if isinstance(key, int) and not isinstance(key, bool):
                if -len(obj) <= key < len(obj):
                    return obj[key]
        return self.undefined(obj=obj, name=key)


def _wrap_filter(name: str, func: Callable[..., Any]) -> Callable[..., Any]:
    """Wrap a filter so its failures surface as FilterError."""
    tolerant = name in UNDEFINED_TOLERANT_FILTERS

    @functools.wraps(func)
    def wrapper(value: Any, *args: Any, **kwargs: Any) -> Any:
        if not tolerant:
            _strict(value)
        try:
            return func(value, *args, **kwargs)
        except DeployHelperError:
            raise
        except Exception as e:
            raise FilterError(name, str(e)) from e

    return wrapper


class TemplateEngine:
    """
    Render templates against a Scope.

    Provides:
    - type-preserving whole-string substitution
    - stringifying interpolation of mixed text
    - recursive rendering of task args
    - 'when' condition evaluation
    """

    def __init__(self, filters: Optional[Mapping[str, Callable[..., Any]]] = None):
        self.env = ValueEnvironment(
            undefined=ScopeUndefined,
            variable_start_string='{{',
            variable_end_string='}}',
            block_start_string='{%',
            block_end_string='%}',
            comment_start_string='{#',
            comment_end_string='#}',
            # Don't auto-escape (we're not rendering HTML)
            autoescape=False,
            keep_trailing_newline=True,
            finalize=lambda value: display(_strict(value)),
        )

        # The filter registry is the only source of filters
        self.env.filters.clear()
        for name, func in (filters if filters is not None else FILTERS).items():
            self.add_filter(name, func)

    def add_filter(self, name: str, func: Callable[..., Any]) -> None:
        """Make a filter available to this engine."""
        self.env.filters[name] = _wrap_filter(name, func)

    def render(self, template_str: Any, scope: Union[Scope, Mapping[str, Any]]) -> Any:
        """
        Render a template string against a scope.

        Args:
            template_str: String potentially containing {{ }} expressions
            scope: Scope (or plain mapping) providing variables

        Returns:
            The expression's Value for a single whole-string expression,
            otherwise the rendered string. Non-strings are returned as-is.

        Raises:
            TemplateError: or one of its subclasses
        """
        if not isinstance(template_str, str):
            return template_str

        # Fast path: no template markers
        if '{{' not in template_str and '{%' not in template_str:
            return template_str

        variables = scope.as_dict() if isinstance(scope, Scope) else dict(scope)

        try:
            self._check_filters(template_str)

            match = _SINGLE_EXPRESSION.match(template_str)
            if match and self._is_single_expression(match.group('expr')):
                expression = self.env.compile_expression(
                    match.group('expr').strip(),
                    undefined_to_none=False,
                )
                return _strict(expression(variables))

            template = self.env.from_string(template_str)
            return template.render(variables)
        except TemplateError as e:
            e.attach_template(template_str)
            raise
        except JinjaTemplateSyntaxError as e:
            raise TemplateSyntaxError(
                f"Template syntax error: {e}",
                template=template_str
            ) from e
        except DeployHelperError:
            raise
        except Exception as e:
            raise TemplateError(
                f"Template error: {e}",
                template=template_str
            ) from e

    def render_recursive(self, data: Any, scope: Union[Scope, Mapping[str, Any]]) -> Any:
        """
        Recursively render templates in a data structure.

        Map values and list items are rendered; keys and non-string
        scalars are left untouched.
        """
        if isinstance(data, str):
            return self.render(data, scope)

        if isinstance(data, dict):
            return {k: self.render_recursive(v, scope) for k, v in data.items()}

        if isinstance(data, list):
            return [self.render_recursive(item, scope) for item in data]

        return data

    def evaluate_when(self, condition: Any, scope: Union[Scope, Mapping[str, Any]]) -> bool:
        """
        Evaluate a 'when' condition.

        Args:
            condition: Bare expression (without {{ }}), or a literal bool

        Returns:
            Boolean result of the condition
        """
        if condition is None:
            return True
        if isinstance(condition, bool):
            return condition

        condition = str(condition).strip()
        if not condition:
            return True

        if '{{' not in condition:
            condition = "{{ " + condition + " }}"
        return self._to_bool(self.render(condition, scope))

    def _check_filters(self, template_str: str) -> None:
        """Reject unknown filter names before evaluation."""
        ast = self.env.parse(template_str)
        for node in ast.find_all(nodes.Filter):
            if node.name not in self.env.filters:
                raise UnknownFilterError(node.name)

    @staticmethod
    def _is_single_expression(expr: str) -> bool:
        return '{{' not in expr and '}}' not in expr and '{%' not in expr

    @staticmethod
    def _to_bool(value: Any) -> bool:
        """Convert a value to boolean (Ansible-style)."""
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            value_lower = value.lower().strip()
            if value_lower in ('true', 'yes', '1', 'on'):
                return True
            if value_lower in ('false', 'no', '0', 'off', ''):
                return False
            return True
        return bool(value)

