"""
deploy-helper Module Base

Base class, registry and dispatcher for all modules.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Type

from deploy_helper.connections.base import Connection
from deploy_helper.engine.errors import ModuleError, UnknownModuleError
from deploy_helper.engine.inventory import Host
from deploy_helper.engine.output import Output
from deploy_helper.engine.results import TaskResult, TaskStatus


@dataclass
class ModuleResult:
    """Result of module execution."""

    changed: bool = False
    rc: int = 0
    stdout: str = ""
    stderr: str = ""
    msg: str = ""
    failed: bool = False
    results: Dict[str, Any] = field(default_factory=dict)

    def to_task_result(self, host: str, task_name: str, play_name: str = "") -> TaskResult:
        """Convert to TaskResult."""
        if self.failed:
            status = TaskStatus.FAILED
        elif self.changed:
            status = TaskStatus.CHANGED
        else:
            status = TaskStatus.OK

        return TaskResult(
            host=host,
            task_name=task_name,
            play_name=play_name,
            status=status,
            changed=self.changed,
            rc=self.rc,
            stdout=self.stdout,
            stderr=self.stderr,
            msg=self.msg,
            results=self.results,
        )


@dataclass
class TaskContext:
    """Everything a module may touch while it runs on one host."""

    host: Host
    connection: Optional[Connection]
    output: Output
    chdir: Optional[str] = None
    # Show command output on the console (off when the task registers it)
    echo_output: bool = True


class Module(ABC):
    """
    Base class for all modules.

    Modules receive their arguments already rendered against the host's
    scope, plus the task context holding the host's connection.
    """

    # Module name (used for registration)
    name: str = ""

    # Required arguments (when args is a mapping)
    required_args: List[str] = []

    # Optional arguments with defaults
    optional_args: Dict[str, Any] = {}

    # Whether the runner must open the host connection first
    needs_connection: bool = True

    # Args evaluated as bare expressions instead of templates
    expression_args: Tuple[str, ...] = ()

    def __init__(self, args: Any, context: TaskContext):
        self.args = self.normalize_args(args)
        self.context = context
        self.connection = context.connection

    def normalize_args(self, args: Any) -> Dict[str, Any]:
        """Turn free-form args into a mapping; modules may override."""
        if args is None:
            return {}
        if isinstance(args, dict):
            return args
        return {'_raw_params': args}

    def validate_args(self) -> Optional[str]:
        """
        Validate module arguments.

        Returns:
            Error message if validation fails, None otherwise
        """
        for required in self.required_args:
            if required not in self.args:
                return f"Missing required argument: {required}"
        return None

    def get_arg(self, name: str, default: Any = None) -> Any:
        """Get an argument value with optional default."""
        if name in self.args:
            return self.args[name]
        if name in self.optional_args:
            return self.optional_args[name]
        return default

    @abstractmethod
    async def run(self) -> ModuleResult:
        """
        Execute the module.

        Returns:
            ModuleResult with execution outcome
        """
        pass


# Module registry
_modules: Dict[str, Type[Module]] = {}
_modules_imported = False


def register_module(cls: Type[Module]) -> Type[Module]:
    """Decorator to register a module class."""
    _modules[cls.name] = cls
    return cls


def get_module(name: str) -> Optional[Type[Module]]:
    """Get a module class by name."""
    _ensure_modules_imported()
    return _modules.get(name)


def _ensure_modules_imported() -> None:
    """Ensure all modules have been imported."""
    global _modules_imported
    if not _modules_imported:
        _import_builtin_modules()
        _modules_imported = True


class ModuleRegistry:
    """Static class for module registry access."""

    @staticmethod
    def get(name: str) -> Optional[Type[Module]]:
        """Get a module class by name."""
        return get_module(name)

    @staticmethod
    def list() -> List[str]:
        """List all registered module names."""
        _ensure_modules_imported()
        return list(_modules.keys())


async def dispatch(module_name: str, args: Any, context: TaskContext) -> ModuleResult:
    """
    Look up a module by name and run it with rendered args.

    Raises:
        UnknownModuleError: If no module is registered under the name
        ModuleError: If the module rejects its arguments
    """
    module_class = get_module(module_name)
    if module_class is None:
        raise UnknownModuleError(module_name)

    module = module_class(args, context)

    error = module.validate_args()
    if error:
        raise ModuleError(module_name, error)

    return await module.run()


def _import_builtin_modules() -> None:
    """Import all built-in modules to register them."""
    # These imports trigger the @register_module decorators
    from deploy_helper.modules import builtin_command
    from deploy_helper.modules import builtin_shell
    from deploy_helper.modules import builtin_debug
