"""
deploy-helper Scope

Ordered variable store for one (play, host) run.
"""

from typing import Any, Dict, Iterator, List, Mapping, Optional

from deploy_helper.engine.errors import UndefinedVariableError


class Scope:
    """
    Flat, ordered mapping of variable name -> Value.

    Mutated only by the runner: task ``vars`` entries are defined one at a
    time, and task results are defined under their ``register`` name.
    Template rendering reads a snapshot and never writes back.
    """

    def __init__(self, variables: Optional[Mapping[str, Any]] = None):
        self._vars: Dict[str, Any] = {}
        if variables:
            for name, value in variables.items():
                self.define(name, value)

    def define(self, name: str, value: Any) -> None:
        """Insert or overwrite a variable."""
        # Overwrite keeps the original position, like dict assignment
        self._vars[name] = value

    def lookup(self, name: str) -> Any:
        """
        Get a variable's value.

        Raises:
            UndefinedVariableError: if the name is not defined
        """
        try:
            return self._vars[name]
        except KeyError:
            raise UndefinedVariableError(name) from None

    def discard(self, name: str) -> None:
        """Remove a variable if present (loop item binding)."""
        self._vars.pop(name, None)

    def names(self) -> List[str]:
        """Variable names in definition order."""
        return list(self._vars)

    def as_dict(self) -> Dict[str, Any]:
        """Shallow snapshot used as the rendering context."""
        return dict(self._vars)

    def __contains__(self, name: object) -> bool:
        return name in self._vars

    def __iter__(self) -> Iterator[str]:
        return iter(self._vars)

    def __len__(self) -> int:
        return len(self._vars)

    def __repr__(self) -> str:
        return f"Scope({self.names()!r})"
