"""
Unit tests for local and SSH connections.
"""

import pytest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import asyncssh

from deploy_helper.connections import LocalConnection, create_connection
from deploy_helper.connections.base import InvocationMode
from deploy_helper.connections.ssh_asyncssh import SSHConnection, build_remote_command
from deploy_helper.engine.errors import ConnectionError
from deploy_helper.engine.inventory import Host


@pytest.fixture
def local_host() -> Host:
    return Host("localhost")


@pytest.fixture
def remote_host() -> Host:
    return Host("web1", address="10.0.0.1", port=2222, user="deploy", password="secret")


class TestCreateConnection:
    """Tests for connection selection."""

    def test_local(self, local_host: Host):
        assert isinstance(create_connection(local_host), LocalConnection)

    def test_remote(self, remote_host: Host):
        conn = create_connection(remote_host)
        assert isinstance(conn, SSHConnection)
        assert conn.connection_type == "ssh"


class TestLocalConnection:
    """Tests for local command execution."""

    @pytest.mark.asyncio
    async def test_shell_command(self, local_host: Host):
        async with LocalConnection(local_host) as conn:
            result = await conn.run("echo hello | tr a-z A-Z")
        assert result.rc == 0
        assert result.stdout == "HELLO"
        assert result.success

    @pytest.mark.asyncio
    async def test_non_zero_exit_is_a_result(self, local_host: Host):
        conn = LocalConnection(local_host)
        result = await conn.run("echo bad >&2; exit 3")
        assert result.rc == 3
        assert result.stderr == "bad"
        assert not result.success

    @pytest.mark.asyncio
    async def test_command_mode_does_not_use_shell(self, local_host: Host):
        conn = LocalConnection(local_host)
        result = await conn.run("echo 'a b' | cat", mode=InvocationMode.COMMAND)
        assert result.stdout == "a b | cat"

    @pytest.mark.asyncio
    async def test_cwd(self, local_host: Host, tmp_path: Path):
        conn = LocalConnection(local_host)
        result = await conn.run("pwd", cwd=str(tmp_path))
        assert Path(result.stdout).resolve() == tmp_path.resolve()

    @pytest.mark.asyncio
    async def test_missing_program(self, local_host: Host):
        conn = LocalConnection(local_host)
        with pytest.raises(ConnectionError):
            await conn.run("definitely-not-a-real-program-xyz", mode=InvocationMode.COMMAND)


class TestBuildRemoteCommand:
    """Tests for the command line sent over SSH."""

    def test_command_mode(self):
        assert build_remote_command("ls -la", InvocationMode.COMMAND) == "ls -la"

    def test_command_mode_keeps_shell_syntax_literal(self):
        cmd = build_remote_command("echo $HOME *.txt | wc", InvocationMode.COMMAND)
        assert cmd == "echo '$HOME' '*.txt' '|' wc"

    def test_command_mode_keeps_quoted_words(self):
        cmd = build_remote_command("echo 'a b'", InvocationMode.COMMAND)
        assert cmd == "echo 'a b'"

    def test_command_mode_unbalanced_quotes(self):
        with pytest.raises(ValueError):
            build_remote_command("echo \"oops", InvocationMode.COMMAND)

    def test_shell_mode_quotes(self):
        assert build_remote_command("echo 'hi'") == "/bin/sh -c 'echo '\"'\"'hi'\"'\"''"

    def test_cwd(self):
        cmd = build_remote_command("make", InvocationMode.COMMAND, cwd="~/app")
        assert cmd == "cd ~/app && make"

    def test_cwd_is_quoted(self):
        cmd = build_remote_command("ls", cwd="/srv/my app")
        assert cmd == "cd '/srv/my app' && /bin/sh -c 'ls'"

    def test_cwd_cannot_inject(self):
        cmd = build_remote_command("ls", InvocationMode.COMMAND, cwd="/tmp; rm -rf x")
        assert cmd == "cd '/tmp; rm -rf x' && ls"


class TestSSHConnection:
    """Tests for SSH connection setup with asyncssh mocked out."""

    @pytest.mark.asyncio
    async def test_password_auth(self, remote_host: Host):
        with patch.object(asyncssh, "connect", new=AsyncMock()) as mock_connect:
            await SSHConnection(remote_host).connect()

        kwargs = mock_connect.call_args.kwargs
        assert kwargs["host"] == "10.0.0.1"
        assert kwargs["port"] == 2222
        assert kwargs["username"] == "deploy"
        assert kwargs["password"] == "secret"
        assert kwargs["known_hosts"] is None

    @pytest.mark.asyncio
    async def test_key_auth_expands_home(self):
        host = Host("web1", address="10.0.0.1", user="deploy", ssh_key_path="~/.ssh/id_ed25519")
        with patch.object(asyncssh, "connect", new=AsyncMock()) as mock_connect:
            await SSHConnection(host).connect()

        keys = mock_connect.call_args.kwargs["client_keys"]
        assert len(keys) == 1
        assert not keys[0].startswith("~")
        assert "password" not in mock_connect.call_args.kwargs

    @pytest.mark.asyncio
    async def test_connect_failure(self, remote_host: Host):
        with patch.object(asyncssh, "connect", new=AsyncMock(side_effect=OSError("refused"))):
            with pytest.raises(ConnectionError, match="refused"):
                await SSHConnection(remote_host).connect()

    @pytest.mark.asyncio
    async def test_run(self, remote_host: Host):
        session = MagicMock()
        session.run = AsyncMock(return_value=MagicMock(exit_status=1, stdout="out\n", stderr="err\n"))
        session.wait_closed = AsyncMock()

        with patch.object(asyncssh, "connect", new=AsyncMock(return_value=session)):
            conn = SSHConnection(remote_host)
            await conn.connect()
            result = await conn.run("false", cwd="/srv")
            await conn.close()

        session.run.assert_awaited_once_with("cd /srv && /bin/sh -c 'false'", check=False)
        assert result.rc == 1
        assert result.stdout == "out"
        assert result.stderr == "err"
        session.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_run_command_mode_parse_failure(self, remote_host: Host):
        session = MagicMock()
        session.run = AsyncMock()

        with patch.object(asyncssh, "connect", new=AsyncMock(return_value=session)):
            conn = SSHConnection(remote_host)
            await conn.connect()
            with pytest.raises(ConnectionError, match="Failed to parse command"):
                await conn.run("echo \"oops", mode=InvocationMode.COMMAND)

        session.run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_run_without_connect(self, remote_host: Host):
        with pytest.raises(ConnectionError, match="Not connected"):
            await SSHConnection(remote_host).run("ls")
