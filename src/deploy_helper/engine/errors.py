# Copyright (c) 2024 deploy-helper Contributors
# MIT License

"""
deploy-helper Error Classes.

All custom exceptions for clear error handling and exit codes.

Two families matter to the runner:

- fatal errors (parse, schema, inventory) abort the whole run before any
  task executes;
- task-scoped errors (templating, dispatch, connection) fail the current
  task and stop the current host for the rest of the play.
"""

from __future__ import annotations

import enum
from typing import Any


class ExitCode(enum.IntEnum):
    """Process exit codes."""

    SUCCESS = 0
    GENERIC_ERROR = 1
    HOST_FAILED = 2
    PARSE_ERROR = 3
    KEYBOARD_INTERRUPT = 130


class DeployHelperError(Exception):
    """Base exception for all deploy-helper errors."""

    exit_code: int = ExitCode.GENERIC_ERROR
    fatal: bool = False

    def __init__(self, message: str, details: str | None = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}\n  Details: {self.details}"
        return self.message

    @property
    def kind(self) -> str:
        """Short error-kind name used in failure reports."""
        return type(self).__name__


# Fatal / startup errors


class ParseError(DeployHelperError):
    """Error reading or parsing a playbook, inventory or vars file."""

    exit_code: int = ExitCode.PARSE_ERROR
    fatal = True

    def __init__(
        self,
        message: str,
        file_path: str | None = None,
        details: str | None = None,
    ) -> None:
        self.file_path = file_path
        location = f" in {file_path}" if file_path else ""
        super().__init__(f"Parse error{location}: {message}", details)


class PlaybookSchemaError(ParseError):
    """Playbook tree is missing required fields or has an unrecognized shape."""

    def __init__(
        self,
        message: str,
        file_path: str | None = None,
        play: str | None = None,
        task: str | None = None,
    ) -> None:
        self.play = play
        self.task = task
        where = []
        if play:
            where.append(f"play '{play}'")
        if task:
            where.append(f"task '{task}'")
        if where:
            message = f"{message} ({', '.join(where)})"
        super().__init__(message, file_path=file_path)


class InventoryError(ParseError):
    """Error in inventory file or host definition."""


class UnknownHostGroupError(InventoryError):
    """A play's hosts selector does not resolve to any host."""

    def __init__(self, selector: str, missing: list[str] | None = None,
                 file_path: str | None = None) -> None:
        self.selector = selector
        self.missing = missing or []
        message = f"Hosts selector '{selector}' does not match any inventory host"
        if self.missing and self.missing != [selector]:
            message += f" (unknown: {', '.join(self.missing)})"
        super().__init__(message, file_path=file_path)


# Task-scoped errors


class TemplateError(DeployHelperError):
    """Error rendering a template string."""

    exit_code: int = ExitCode.HOST_FAILED

    def __init__(self, message: str, template: str | None = None) -> None:
        self.template = template

        details = None
        if template:
            # Truncate long templates
            truncated = template[:100] + "..." if len(template) > 100 else template
            details = f"Template: {truncated}"

        super().__init__(message, details)

    def attach_template(self, template: str) -> None:
        """Record the template being rendered if not already known."""
        if self.template is None:
            self.template = template
            truncated = template[:100] + "..." if len(template) > 100 else template
            self.details = f"Template: {truncated}"


class TemplateSyntaxError(TemplateError):
    """A {{ }} expression could not be parsed."""


class UndefinedVariableError(TemplateError):
    """A template referenced a variable that is not in scope."""

    def __init__(self, name: str, template: str | None = None) -> None:
        self.name = name
        super().__init__(f"Undefined variable: '{name}'", template)


class PropertyAccessError(TemplateError):
    """A '.name' or '[index]' step is not valid for the current value."""

    def __init__(self, target: str, key: Any, template: str | None = None) -> None:
        self.target = target
        self.key = key
        super().__init__(f"Cannot access {key!r} on {target}", template)


class UnknownFilterError(TemplateError):
    """A template used a filter name that is not registered."""

    def __init__(self, filter_name: str, template: str | None = None) -> None:
        self.filter_name = filter_name
        super().__init__(f"Unknown filter: '{filter_name}'", template)


class FilterError(TemplateError):
    """A filter rejected its input."""

    def __init__(
        self,
        filter_name: str,
        cause: str,
        template: str | None = None,
    ) -> None:
        self.filter_name = filter_name
        self.cause = cause
        super().__init__(f"Filter '{filter_name}' failed: {cause}", template)


class JsonDecodeError(FilterError):
    """Text handed to from_json is not valid JSON."""

    def __init__(self, cause: str, text: Any = None) -> None:
        self.text = text
        super().__init__("from_json", cause)


class UnknownModuleError(DeployHelperError):
    """A task names a module that is not registered."""

    exit_code: int = ExitCode.HOST_FAILED

    def __init__(self, module: str) -> None:
        self.module = module
        super().__init__(f"Unknown module: '{module}'")


class ModuleError(DeployHelperError):
    """Error executing a module on a host."""

    exit_code: int = ExitCode.HOST_FAILED

    def __init__(
        self,
        module: str,
        message: str,
        rc: int | None = None,
        stderr: str | None = None,
    ) -> None:
        self.module = module
        self.rc = rc
        self.stderr = stderr

        details_parts = []
        if rc is not None:
            details_parts.append(f"rc={rc}")
        if stderr:
            details_parts.append(f"stderr: {stderr[:200]}")

        super().__init__(
            f"Module '{module}' failed: {message}",
            "; ".join(details_parts) if details_parts else None
        )


class ConnectionError(DeployHelperError):
    """Error connecting to, or running a command on, a host."""

    exit_code: int = ExitCode.HOST_FAILED

    def __init__(
        self,
        host: str,
        message: str,
        connection_type: str | None = None,
        details: str | None = None,
    ) -> None:
        self.host = host
        self.connection_type = connection_type
        conn_info = f" ({connection_type})" if connection_type else ""
        super().__init__(f"Connection to {host}{conn_info} failed: {message}", details)
