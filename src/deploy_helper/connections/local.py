"""
deploy-helper Local Connection

Execute commands on the local machine (no remote connection).
"""

import asyncio
import os
import shlex
from typing import Optional

from deploy_helper.connections.base import Connection, InvocationMode, RunResult
from deploy_helper.engine.errors import ConnectionError
from deploy_helper.engine.inventory import Host


class LocalConnection(Connection):
    """
    Local connection - execute commands on the control node.

    Used for localhost execution without any network operations.
    """

    def __init__(self, host: Host):
        super().__init__(host)
        self._connected = False

    async def connect(self) -> None:
        """Local connection is always available."""
        self._connected = True

    async def close(self) -> None:
        """Nothing to close for local connection."""
        self._connected = False

    async def run(
        self,
        command: str,
        mode: InvocationMode = InvocationMode.SHELL,
        cwd: Optional[str] = None,
    ) -> RunResult:
        """
        Run a command locally.

        Args:
            command: Command to execute
            mode: SHELL runs through /bin/sh, COMMAND execs the split argv
            cwd: Working directory

        Returns:
            RunResult with rc, stdout, stderr
        """
        if cwd:
            cwd = os.path.expanduser(cwd)

        try:
            if mode == InvocationMode.SHELL:
                process = await asyncio.create_subprocess_shell(
                    command,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    cwd=cwd,
                )
            else:
                args = shlex.split(command)
                if not args:
                    raise ConnectionError(
                        host=self.host.name,
                        message="empty command",
                        connection_type='local'
                    )
                process = await asyncio.create_subprocess_exec(
                    *args,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                    cwd=cwd,
                )

            stdout_bytes, stderr_bytes = await process.communicate()
        except ValueError as e:
            raise ConnectionError(
                host=self.host.name,
                message=f"Failed to parse command: {e}",
                connection_type='local'
            )
        except OSError as e:
            raise ConnectionError(
                host=self.host.name,
                message=f"Failed to run '{command}': {e}",
                connection_type='local'
            )

        return RunResult(
            rc=process.returncode if process.returncode is not None else -1,
            stdout=_decode(stdout_bytes),
            stderr=_decode(stderr_bytes),
        )


def _decode(data: bytes) -> str:
    """Decode process output, dropping the trailing newline."""
    return data.decode('utf-8', errors='replace').rstrip('\r\n')
