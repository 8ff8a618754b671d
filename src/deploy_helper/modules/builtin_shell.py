"""
deploy-helper shell module

Execute commands through /bin/sh.
"""

from deploy_helper.connections.base import InvocationMode
from deploy_helper.modules.base import register_module
from deploy_helper.modules.builtin_command import CommandModule


@register_module
class ShellModule(CommandModule):
    """
    Execute shell commands on target hosts.

    Same contract as command, but each line goes through the target's
    shell, so pipes, redirection and globbing work.
    """

    name = "shell"
    mode = InvocationMode.SHELL
