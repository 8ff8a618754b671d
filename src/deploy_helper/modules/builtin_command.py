"""
deploy-helper command module

Execute commands without shell processing.
"""

import shlex
from typing import List, Optional

from deploy_helper.connections.base import InvocationMode
from deploy_helper.modules.base import Module, ModuleResult, register_module


def split_commands(text: str) -> List[str]:
    """
    Split a command block into logical command lines.

    Blank lines are dropped; a line ending in a backslash continues on the
    next line, joined with a single space.
    """
    commands: List[str] = []
    current = ""

    for line in text.splitlines():
        stripped = line.strip()
        if not stripped:
            continue

        if stripped.endswith('\\'):
            current += stripped.rstrip('\\').rstrip() + ' '
        else:
            commands.append(current + stripped)
            current = ""

    # Trailing continuation with nothing after it
    if current.strip():
        commands.append(current.strip())

    return commands


@register_module
class CommandModule(Module):
    """
    Execute commands on target hosts.

    Unlike shell, this module does not process commands through a shell,
    so pipes, redirection, globbing and shell variables won't work. Each
    line of a multi-line block runs in turn; the first non-zero exit
    status fails the task.
    """

    name = "command"
    mode = InvocationMode.COMMAND
    required_args = []  # Either _raw_params or cmd
    optional_args = {
        "chdir": None,
    }

    def validate_args(self) -> Optional[str]:
        cmd = self.args.get("_raw_params", self.args.get("cmd"))
        if not isinstance(cmd, str) or not cmd.strip():
            return "Either free-form command or 'cmd' argument is required"
        lines = split_commands(cmd)
        if not lines:
            return "Command block contains no command lines"
        if self.mode == InvocationMode.COMMAND:
            for line in lines:
                try:
                    shlex.split(line)
                except ValueError as e:
                    return f"Failed to parse command '{line}': {e}"
        return None

    async def run(self) -> ModuleResult:
        """Execute the command lines in order."""
        cmd = self.args.get("_raw_params") or self.args.get("cmd", "")
        chdir = self.get_arg("chdir") or self.context.chdir

        if not self.connection:
            return ModuleResult(
                failed=True,
                msg="No connection available",
            )

        output = self.context.output
        result = None
        for line in split_commands(cmd):
            output.command(line)
            result = await self.connection.run(line, mode=self.mode, cwd=chdir)
            if self.context.echo_output:
                output.command_output(result.stdout, result.stderr)
            if result.rc != 0:
                break

        return ModuleResult(
            changed=True,  # Commands always report changed
            rc=result.rc,
            stdout=result.stdout,
            stderr=result.stderr,
            failed=result.rc != 0,
            msg=f"non-zero return code: {result.rc}" if result.rc != 0 else "",
        )
