"""
deploy-helper Engine Module

Core execution engine for parsing and running playbooks.
"""

from deploy_helper.engine.inventory import Host, InventoryManager
from deploy_helper.engine.playbook import PlaybookParser, Play, Task
from deploy_helper.engine.scope import Scope
from deploy_helper.engine.templating import TemplateEngine
from deploy_helper.engine.results import TaskResult, TaskStatus, PlayResult, PlaybookResult
from deploy_helper.engine.errors import (
    DeployHelperError,
    ParseError,
    TemplateError,
    ConnectionError,
    ModuleError,
)

__all__ = [
    'Host',
    'InventoryManager',
    'PlaybookParser',
    'Play',
    'Task',
    'Scope',
    'TemplateEngine',
    'TaskResult',
    'TaskStatus',
    'PlayResult',
    'PlaybookResult',
    'DeployHelperError',
    'ParseError',
    'TemplateError',
    'ConnectionError',
    'ModuleError',
]
