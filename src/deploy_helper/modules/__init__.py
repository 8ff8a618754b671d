"""
deploy-helper Modules

Built-in modules for task execution.
"""

from deploy_helper.modules.base import (
    Module,
    ModuleRegistry,
    ModuleResult,
    TaskContext,
    dispatch,
    get_module,
    register_module,
)

__all__ = [
    'Module',
    'ModuleRegistry',
    'ModuleResult',
    'TaskContext',
    'dispatch',
    'get_module',
    'register_module',
]
