"""
deploy-helper SSH Connection (asyncssh)

SSH connection using asyncssh for async operations.
"""

import os
import shlex
from typing import Optional

import asyncssh

from deploy_helper.connections.base import Connection, InvocationMode, RunResult
from deploy_helper.engine.errors import ConnectionError
from deploy_helper.engine.inventory import Host


class SSHConnection(Connection):
    """
    SSH connection using asyncssh.

    Supports:
    - Key-based authentication (ssh_key_path, ~ expanded)
    - Password authentication
    - Custom ports

    The handshake happens once in connect(); every task of the host run
    reuses the same session. Failures are not retried.
    """

    def __init__(self, host: Host, connect_timeout: int = 30):
        super().__init__(host)
        self.connect_timeout = connect_timeout
        self._conn: Optional[asyncssh.SSHClientConnection] = None

    async def connect(self) -> None:
        """Establish SSH connection."""
        connect_kwargs = {
            'host': self.host.address,
            'port': self.host.port,
            'username': self.host.user,
            'connect_timeout': self.connect_timeout,
            # Host keys are not pinned in the inventory
            'known_hosts': None,
        }

        # Add authentication options
        if self.host.ssh_key_path:
            connect_kwargs['client_keys'] = [os.path.expanduser(self.host.ssh_key_path)]
        elif self.host.password:
            connect_kwargs['password'] = self.host.password
            connect_kwargs['client_keys'] = None

        try:
            self._conn = await asyncssh.connect(**connect_kwargs)
        except (OSError, asyncssh.Error) as e:
            raise ConnectionError(
                host=self.host.name,
                message=str(e) or type(e).__name__,
                connection_type='ssh'
            )

    async def close(self) -> None:
        """Close SSH connection."""
        if self._conn:
            self._conn.close()
            await self._conn.wait_closed()
            self._conn = None

    async def run(
        self,
        command: str,
        mode: InvocationMode = InvocationMode.SHELL,
        cwd: Optional[str] = None,
    ) -> RunResult:
        """
        Run a command over SSH.

        Args:
            command: Command to execute
            mode: SHELL wraps the command in /bin/sh -c
            cwd: Working directory (prepends cd command)

        Returns:
            RunResult with rc, stdout, stderr
        """
        if not self._conn:
            raise ConnectionError(
                host=self.host.name,
                message="Not connected",
                connection_type='ssh'
            )

        try:
            full_command = build_remote_command(command, mode, cwd)
        except ValueError as e:
            raise ConnectionError(
                host=self.host.name,
                message=f"Failed to parse command: {e}",
                connection_type='ssh'
            )

        try:
            result = await self._conn.run(full_command, check=False)
        except (OSError, asyncssh.Error) as e:
            raise ConnectionError(
                host=self.host.name,
                message=str(e) or type(e).__name__,
                connection_type='ssh'
            )

        return RunResult(
            rc=result.exit_status if result.exit_status is not None else -1,
            stdout=_as_text(result.stdout).rstrip('\r\n'),
            stderr=_as_text(result.stderr).rstrip('\r\n'),
        )


def build_remote_command(
    command: str,
    mode: InvocationMode = InvocationMode.SHELL,
    cwd: Optional[str] = None,
) -> str:
    """
    Build the command line sent over the SSH channel.

    The remote login shell parses whatever is sent, so COMMAND mode
    re-quotes every argv word to keep pipes, globs and variables literal.

    Raises:
        ValueError: If a COMMAND mode line has unbalanced quotes
    """
    if mode == InvocationMode.SHELL:
        # Wrap in shell for proper shell behavior
        full_command = f"/bin/sh -c {_shell_quote(command)}"
    else:
        full_command = shlex.join(shlex.split(command))

    if cwd:
        full_command = f"cd {_quote_path(cwd)} && {full_command}"

    return full_command


def _as_text(data) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode('utf-8', errors='replace')
    return str(data)


def _quote_path(path: str) -> str:
    """Quote a directory for cd, leaving a leading ~ to the remote shell."""
    if path == '~':
        return path
    if path.startswith('~/'):
        return '~/' + shlex.quote(path[2:])
    return shlex.quote(path)


def _shell_quote(s: str) -> str:
    """Quote a string for shell use."""
    # Simple single-quote escaping
    return "'" + s.replace("'", "'\"'\"'") + "'"
