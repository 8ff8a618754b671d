"""
deploy-helper Connection Base Class

Abstract base class for all connection types.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from deploy_helper.engine.inventory import Host


class InvocationMode(Enum):
    """How a command line is handed to the target."""
    COMMAND = "command"  # argv split, no shell
    SHELL = "shell"      # passed to sh -c


@dataclass
class RunResult:
    """Result of running a command on a host."""

    rc: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.rc == 0


class Connection(ABC):
    """
    Abstract base class for connections.

    A connection is opened once per (play, host) run, reused for every task
    of that run, and closed afterwards. A non-zero exit status is a normal
    RunResult; only failures to reach the host or start the process raise
    ConnectionError.
    """

    def __init__(self, host: Host):
        self.host = host

    @abstractmethod
    async def connect(self) -> None:
        """Establish the connection."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the connection."""
        pass

    @abstractmethod
    async def run(
        self,
        command: str,
        mode: InvocationMode = InvocationMode.SHELL,
        cwd: Optional[str] = None,
    ) -> RunResult:
        """
        Run a command on the host.

        Args:
            command: Command line to execute
            mode: SHELL to run through sh, COMMAND to exec the argv directly
            cwd: Working directory

        Returns:
            RunResult with rc, stdout, stderr

        Raises:
            ConnectionError: If the command could not be started
        """
        pass

    @property
    def connection_type(self) -> str:
        """Return the connection type name."""
        return self.__class__.__name__.replace('Connection', '').lower()

    async def __aenter__(self) -> "Connection":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


def create_connection(host: Host) -> Connection:
    """Create the appropriate (unconnected) connection for a host."""
    if host.is_local:
        from deploy_helper.connections.local import LocalConnection
        return LocalConnection(host)

    from deploy_helper.connections.ssh_asyncssh import SSHConnection
    return SSHConnection(host)
