"""
deploy-helper Playbook Runner

Execution engine: drives plays -> hosts -> tasks, one at a time.

For each (play, host) pair the runner builds a fresh Scope, opens the
host's connection on first use, and runs the play's tasks in document
order. Each task goes through:

    when -> vars (defined one by one) -> args rendered -> dispatched
         -> result registered

The first failed task stops that host for the rest of the play; other
hosts and later plays still run.
"""

import asyncio
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional, Union

from deploy_helper.connections.base import Connection, create_connection
from deploy_helper.engine.errors import (
    DeployHelperError,
    ExitCode,
    ModuleError,
    TemplateError,
)
from deploy_helper.engine.inventory import Host, InventoryManager
from deploy_helper.engine.output import Output
from deploy_helper.engine.playbook import Play, PlaybookParser, Task
from deploy_helper.engine.results import (
    HostStats,
    PlaybookResult,
    PlayResult,
    TaskResult,
    TaskStatus,
)
from deploy_helper.engine.scope import Scope
from deploy_helper.engine.templating import TemplateEngine
from deploy_helper.modules.base import TaskContext, dispatch, get_module

ConnectionFactory = Callable[[Host], Connection]

LOOP_VAR = "item"


class HostRun:
    """
    State of one host's run through one play.

    Owns the host's Scope and its connection. The connection is opened the
    first time a task needs it and reused by every later task.
    """

    def __init__(
        self,
        play: Play,
        host: Host,
        scope: Scope,
        connection_factory: ConnectionFactory,
    ):
        self.play = play
        self.host = host
        self.scope = scope
        self._connection_factory = connection_factory
        self._connection: Optional[Connection] = None

    async def acquire_connection(self) -> Connection:
        """
        Get the host's connection, connecting on first use.

        Raises:
            ConnectionError: If the host cannot be reached
        """
        if self._connection is None:
            connection = self._connection_factory(self.host)
            await connection.connect()
            self._connection = connection
        return self._connection

    async def release(self) -> None:
        """Close the connection if one was opened."""
        connection, self._connection = self._connection, None
        if connection is not None:
            await connection.close()


class PlaybookRunner:
    """
    High-level playbook runner.

    Coordinates:
    - Playbook parsing and inventory resolution (fatal errors)
    - Per-host scopes and connections
    - Task templating, module dispatch and result registration
    - Output and exit status
    """

    def __init__(
        self,
        playbook_path: Union[str, Path],
        inventory_source: Union[str, Path, None] = "servers.yml",
        extra_vars: Optional[Mapping[str, Any]] = None,
        output: Optional[Output] = None,
        template_engine: Optional[TemplateEngine] = None,
        connection_factory: Optional[ConnectionFactory] = None,
    ):
        self.playbook_path = str(playbook_path)
        self.inventory_source = inventory_source
        self.extra_vars = dict(extra_vars or {})
        self.output = output or Output()
        self.template_engine = template_engine or TemplateEngine()
        self.connection_factory = connection_factory or create_connection
        self.inventory: Optional[InventoryManager] = None

    def run(self) -> int:
        """
        Run the playbook synchronously.

        Returns:
            Exit code (0=success, 2=host failures, 3=parse error)
        """
        try:
            result = asyncio.run(self.run_async())
            return result.exit_code
        except DeployHelperError as e:
            self.output.error(f"{e.kind}: {e}")
            return int(e.exit_code)
        except KeyboardInterrupt:
            self.output.error("\nInterrupted")
            return int(ExitCode.KEYBOARD_INTERRUPT)

    async def run_async(self) -> PlaybookResult:
        """
        Run the playbook.

        Raises:
            ParseError: (and subclasses) before any task has run
        """
        plays = PlaybookParser(self.playbook_path).parse()

        self.inventory = InventoryManager()
        self.inventory.parse(self.inventory_source)

        # Resolve every selector up front: unknown hosts abort the run
        play_hosts = [(play, self.inventory.get_hosts(play.hosts)) for play in plays]

        self.output.playbook(self.playbook_path)

        result = PlaybookResult(playbook_path=self.playbook_path)
        for play, hosts in play_hosts:
            result.add_play_result(await self.run_play(play, hosts))

        self.output.recap(result.get_final_stats())
        return result

    async def run_play(self, play: Play, hosts: List[Host]) -> PlayResult:
        """Run one play on each of its hosts, one host after another."""
        play_result = PlayResult(
            play_name=play.name,
            hosts=[h.name for h in hosts],
        )
        for host in hosts:
            play_result.host_stats.setdefault(host.name, HostStats(host.name))
            for task_result in await self.run_host(play, host):
                play_result.add_result(task_result)
        return play_result

    async def run_host(self, play: Play, host: Host) -> List[TaskResult]:
        """
        Run a play's tasks on one host until the first failure.

        Returns:
            Task results in execution order
        """
        self.output.play(play.name, host.name)

        run = HostRun(play, host, Scope(self.extra_vars), self.connection_factory)
        results: List[TaskResult] = []

        try:
            play_vars_result = self._define_play_vars(run)
            if play_vars_result is not None:
                results.append(play_vars_result)
                return results

            for task in play.tasks:
                task_result = await self.run_task(task, run)
                results.append(task_result)
                if task_result.failed:
                    break
        finally:
            await self._release(run)

        return results

    async def run_task(self, task: Task, run: HostRun) -> TaskResult:
        """Run a single task on a host, returning its result."""
        task_name = self._render_name(task.name, run.scope)
        self.output.task(task_name)

        try:
            if not self.template_engine.evaluate_when(task.when, run.scope):
                result = self._new_result(run, task_name, TaskStatus.SKIPPED, msg="Conditional check failed")
            else:
                for name, raw in task.vars.items():
                    run.scope.define(name, self.template_engine.render_recursive(raw, run.scope))

                if task.module is None:
                    result = self._new_result(run, task_name, TaskStatus.OK)
                elif task.loop is not None:
                    result = await self._run_loop(task, task_name, run)
                else:
                    result = await self._execute(task, task_name, run)

                if task.register and not result.failed:
                    run.scope.define(task.register, result.to_value())
        except Exception as e:
            result = self._failed_result(run, task_name, e)

        self.output.host_result(result)
        if result.failed:
            self.output.failure(result)
        return result

    async def _execute(self, task: Task, task_name: str, run: HostRun) -> TaskResult:
        """Render args, dispatch to the module, convert its result."""
        module_class = get_module(task.module)

        args = self.template_engine.render_recursive(task.args, run.scope)
        if module_class is not None:
            args = self._evaluate_expression_args(module_class, args, run.scope)

        chdir = task.chdir or run.play.chdir
        if chdir:
            chdir = self.template_engine.render(chdir, run.scope)

        connection = None
        if module_class is not None and module_class.needs_connection:
            connection = await run.acquire_connection()

        context = TaskContext(
            host=run.host,
            connection=connection,
            output=self.output,
            chdir=chdir,
            echo_output=task.register is None,
        )
        module_result = await dispatch(task.module, args, context)

        result = module_result.to_task_result(run.host.name, task_name, run.play.name)
        if result.failed:
            result.error = ModuleError(
                task.module,
                module_result.msg or "task failed",
                rc=module_result.rc,
                stderr=module_result.stderr,
            )
        return result

    async def _run_loop(self, task: Task, task_name: str, run: HostRun) -> TaskResult:
        """Run a task once per loop item, stopping at the first failure."""
        items = self.template_engine.render_recursive(task.loop, run.scope)
        if not isinstance(items, list):
            raise TemplateError(
                f"'loop' must evaluate to a list, got {type(items).__name__}",
                template=str(task.loop)
            )

        loop_results: List[TaskResult] = []
        try:
            for item in items:
                run.scope.define(LOOP_VAR, item)
                item_result = await self._execute(task, task_name, run)
                loop_results.append(item_result)
                if item_result.failed:
                    break
        finally:
            run.scope.discard(LOOP_VAR)

        failed = next((r for r in loop_results if r.failed), None)
        changed = any(r.changed for r in loop_results)
        last = loop_results[-1] if loop_results else None

        if failed is not None:
            status = TaskStatus.FAILED
        elif changed:
            status = TaskStatus.CHANGED
        else:
            status = TaskStatus.OK

        return self._new_result(
            run,
            task_name,
            status,
            changed=changed,
            rc=last.rc if last else 0,
            stdout=last.stdout if last else "",
            stderr=last.stderr if last else "",
            msg=failed.msg if failed else f"Loop completed with {len(loop_results)} iterations",
            error=failed.error if failed else None,
            loop_results=loop_results,
        )

    def _evaluate_expression_args(self, module_class, args: Any, scope: Scope) -> Any:
        """Evaluate args a module declares as bare expressions (debug var)."""
        names = getattr(module_class, 'expression_args', ())
        if not names or not isinstance(args, dict):
            return args
        evaluated = dict(args)
        for name in names:
            if isinstance(evaluated.get(name), str):
                evaluated[name] = self.template_engine.render(
                    "{{ " + evaluated[name] + " }}", scope
                )
        return evaluated

    def _define_play_vars(self, run: HostRun) -> Optional[TaskResult]:
        """Define play-level vars in order; a failure fails the host run."""
        try:
            for name, raw in run.play.vars.items():
                run.scope.define(name, self.template_engine.render_recursive(raw, run.scope))
        except DeployHelperError as e:
            result = self._failed_result(run, "play vars", e)
            self.output.host_result(result)
            self.output.failure(result)
            return result
        return None

    def _render_name(self, name: str, scope: Scope) -> str:
        """Template a task name, falling back to the raw text."""
        try:
            rendered = self.template_engine.render(name, scope)
        except TemplateError:
            return name
        return rendered if isinstance(rendered, str) else str(rendered)

    async def _release(self, run: HostRun) -> None:
        try:
            await run.release()
        except Exception as e:
            self.output.warning(f"Failed to close connection to {run.host.name}: {e}")

    @staticmethod
    def _new_result(run: HostRun, task_name: str, status: TaskStatus, **kwargs: Any) -> TaskResult:
        return TaskResult(
            host=run.host.name,
            task_name=task_name,
            play_name=run.play.name,
            status=status,
            **kwargs,
        )

    def _failed_result(self, run: HostRun, task_name: str, error: Exception) -> TaskResult:
        return self._new_result(
            run,
            task_name,
            TaskStatus.FAILED,
            msg=str(error),
            error=error,
        )
