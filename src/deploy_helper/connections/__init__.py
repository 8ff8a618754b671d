"""
deploy-helper Connections Module

Connection plugins for local and SSH execution.
"""

from deploy_helper.connections.base import (
    Connection,
    InvocationMode,
    RunResult,
    create_connection,
)
from deploy_helper.connections.local import LocalConnection

__all__ = [
    'Connection',
    'InvocationMode',
    'RunResult',
    'LocalConnection',
    'create_connection',
]
