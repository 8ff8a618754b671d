"""
Unit tests for the module registry and built-in modules.
"""

import io
import pytest
from typing import Dict, List, Optional, Tuple

from deploy_helper.connections.base import Connection, InvocationMode, RunResult
from deploy_helper.engine.errors import ModuleError, UnknownModuleError
from deploy_helper.engine.inventory import Host
from deploy_helper.engine.output import Output
from deploy_helper.modules import ModuleRegistry, TaskContext, dispatch, get_module
from deploy_helper.modules.base import Module, ModuleResult, register_module
from deploy_helper.modules.builtin_command import split_commands


class MockConnection(Connection):
    """Mock connection for testing."""

    def __init__(self, host: Host, responses: Optional[Dict[str, RunResult]] = None):
        super().__init__(host)
        self.responses = responses or {}
        self.commands_run: List[Tuple[str, InvocationMode, Optional[str]]] = []

    async def connect(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def run(
        self,
        command: str,
        mode: InvocationMode = InvocationMode.SHELL,
        cwd: Optional[str] = None,
    ) -> RunResult:
        self.commands_run.append((command, mode, cwd))
        return self.responses.get(command, RunResult(rc=0, stdout="ok", stderr=""))


def make_context(connection=None, chdir=None, echo_output=True):
    host = Host("localhost")
    output = Output(color=False, stdout=io.StringIO(), stderr=io.StringIO())
    return TaskContext(
        host=host,
        connection=connection,
        output=output,
        chdir=chdir,
        echo_output=echo_output,
    )


class TestSplitCommands:
    """Tests for multi-line command blocks."""

    def test_single_line(self):
        assert split_commands("echo hi") == ["echo hi"]

    def test_blank_lines_dropped(self):
        assert split_commands("\n  echo a\n\n echo b  \n") == ["echo a", "echo b"]

    def test_backslash_continuation(self):
        text = "docker run \\\n  --rm \\\n  alpine true\necho done"
        assert split_commands(text) == ["docker run --rm alpine true", "echo done"]

    def test_trailing_continuation(self):
        assert split_commands("echo a \\") == ["echo a"]


class TestRegistry:
    """Tests for module lookup."""

    def test_builtins_registered(self):
        names = ModuleRegistry.list()
        for name in ("command", "shell", "debug"):
            assert name in names

    def test_unknown_module_lookup(self):
        assert get_module("no_such_module") is None

    @pytest.mark.asyncio
    async def test_dispatch_unknown_module(self):
        with pytest.raises(UnknownModuleError) as exc_info:
            await dispatch("no_such_module", {}, make_context())
        assert exc_info.value.module == "no_such_module"

    @pytest.mark.asyncio
    async def test_custom_module(self):
        @register_module
        class EchoModule(Module):
            name = "test_echo"
            needs_connection = False
            required_args = ["text"]

            async def run(self) -> ModuleResult:
                return ModuleResult(msg=self.args["text"], results={"echoed": self.args["text"]})

        result = await dispatch("test_echo", {"text": "hello"}, make_context())
        assert result.msg == "hello"
        assert result.results == {"echoed": "hello"}

        with pytest.raises(ModuleError, match="Missing required argument: text"):
            await dispatch("test_echo", {}, make_context())


class TestCommandModule:
    """Tests for command and shell."""

    @pytest.mark.asyncio
    async def test_runs_free_form_command(self):
        conn = MockConnection(Host("localhost"), {
            "cat VERSION": RunResult(rc=0, stdout="1.2.3", stderr=""),
        })
        result = await dispatch("command", "cat VERSION", make_context(conn))

        assert conn.commands_run == [("cat VERSION", InvocationMode.COMMAND, None)]
        assert result.stdout == "1.2.3"
        assert result.rc == 0
        assert result.changed
        assert not result.failed

    @pytest.mark.asyncio
    async def test_shell_mode_and_cmd_arg(self):
        conn = MockConnection(Host("localhost"))
        await dispatch("shell", {"cmd": "ls | wc -l"}, make_context(conn))
        assert conn.commands_run == [("ls | wc -l", InvocationMode.SHELL, None)]

    @pytest.mark.asyncio
    async def test_multi_line_stops_at_first_failure(self):
        conn = MockConnection(Host("localhost"), {
            "step2": RunResult(rc=4, stdout="", stderr="broken"),
        })
        result = await dispatch("shell", "step1\nstep2\nstep3", make_context(conn))

        assert [c[0] for c in conn.commands_run] == ["step1", "step2"]
        assert result.failed
        assert result.rc == 4
        assert result.stderr == "broken"

    @pytest.mark.asyncio
    async def test_chdir_from_args_and_context(self):
        conn = MockConnection(Host("localhost"))
        await dispatch("shell", {"cmd": "make", "chdir": "/src"}, make_context(conn, chdir="/play"))
        await dispatch("shell", "make", make_context(conn, chdir="/play"))
        assert [c[2] for c in conn.commands_run] == ["/src", "/play"]

    @pytest.mark.asyncio
    async def test_echoes_commands_and_output(self):
        conn = MockConnection(Host("localhost"), {
            "whoami": RunResult(rc=0, stdout="deploy", stderr=""),
        })
        context = make_context(conn)
        await dispatch("command", "whoami", context)
        assert context.output.stdout.getvalue() == "> whoami\ndeploy\n"

    @pytest.mark.asyncio
    async def test_registered_output_not_shown(self):
        conn = MockConnection(Host("localhost"), {
            "whoami": RunResult(rc=0, stdout="deploy", stderr=""),
        })
        context = make_context(conn, echo_output=False)
        await dispatch("command", "whoami", context)
        assert "deploy" not in context.output.stdout.getvalue()

    @pytest.mark.asyncio
    async def test_missing_command(self):
        with pytest.raises(ModuleError, match="required"):
            await dispatch("command", {"chdir": "/tmp"}, make_context(MockConnection(Host("x"))))

    @pytest.mark.asyncio
    async def test_unbalanced_quotes_rejected(self):
        with pytest.raises(ModuleError, match="Failed to parse"):
            await dispatch("command", 'echo "oops', make_context(MockConnection(Host("x"))))


    @pytest.mark.asyncio
    async def test_block_without_command_lines(self):
        conn = MockConnection(Host("x"))
        with pytest.raises(ModuleError, match="no command lines"):
            await dispatch("command", "\\", make_context(conn))
        assert conn.commands_run == []


class TestDebugModule:
    """Tests for debug."""

    @pytest.mark.asyncio
    async def test_msg(self):
        context = make_context()
        result = await dispatch("debug", {"msg": "Deploying 1.2"}, context)
        assert result.msg == "Deploying 1.2"
        assert result.results == {"msg": "Deploying 1.2"}
        assert context.output.stdout.getvalue() == "Deploying 1.2\n"

    @pytest.mark.asyncio
    async def test_free_form_is_msg(self):
        result = await dispatch("debug", "hello", make_context())
        assert result.msg == "hello"

    @pytest.mark.asyncio
    async def test_structured_value_is_displayed_as_json(self):
        result = await dispatch("debug", {"var": {"a": [1, 2]}}, make_context())
        assert result.msg == '{"a":[1,2]}'

    @pytest.mark.asyncio
    async def test_default_message(self):
        result = await dispatch("debug", None, make_context())
        assert result.msg == "Hello world!"

    @pytest.mark.asyncio
    async def test_unknown_argument(self):
        with pytest.raises(ModuleError, match="Unsupported debug arguments"):
            await dispatch("debug", {"msg": "x", "verbosity": 2}, make_context())

    def test_does_not_need_connection(self):
        assert get_module("debug").needs_connection is False
        assert get_module("shell").needs_connection is True
