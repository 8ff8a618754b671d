"""
deploy-helper debug module

Print debug messages during playbook execution.
"""

from typing import Any, Dict, Optional

from deploy_helper.engine.values import display
from deploy_helper.modules.base import Module, ModuleResult, register_module


@register_module
class DebugModule(Module):
    """
    Print debug messages.

    ``msg`` arrives already rendered against the host's scope. ``var``
    names a variable whose value was resolved by the runner.
    """

    name = "debug"
    needs_connection = False
    expression_args = ("var",)
    required_args = []
    optional_args = {
        "msg": "Hello world!",
    }

    def normalize_args(self, args: Any) -> Dict[str, Any]:
        # "debug: some text" is shorthand for msg
        if args is None:
            return {}
        if isinstance(args, dict):
            return args
        return {"msg": args}

    def validate_args(self) -> Optional[str]:
        unknown = set(self.args) - {"msg", "var"}
        if unknown:
            return f"Unsupported debug arguments: {', '.join(sorted(unknown))}"
        return None

    async def run(self) -> ModuleResult:
        """Print the debug message."""
        if "var" in self.args and "msg" not in self.args:
            output = display(self.args["var"])
        else:
            output = display(self.get_arg("msg"))

        self.context.output.debug(output)

        return ModuleResult(
            changed=False,
            msg=output,
            results={"msg": output},
        )
