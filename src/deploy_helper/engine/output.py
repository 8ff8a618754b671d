"""
deploy-helper Output

Console reporting for a run: play/task banners, per-host status lines,
debug messages on stdout, failures and warnings on stderr, final recap.
"""

import os
import sys
from typing import Dict, Optional, TextIO

from deploy_helper.engine.results import HostStats, TaskResult, TaskStatus


COLORS = {
    'ok': '\033[32m',       # Green
    'changed': '\033[33m',  # Yellow
    'failed': '\033[31m',   # Red
    'skipped': '\033[36m',  # Cyan
    'debug': '\033[34m',    # Blue
    'command': '\033[35m',  # Magenta
    'warning': '\033[33m',
}
RESET = '\033[0m'


class Output:
    """Writes run progress to stdout and failures to stderr."""

    def __init__(
        self,
        color: Optional[bool] = None,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
    ):
        if color is None:
            color = 'NO_COLOR' not in os.environ
        self.color = color
        self._stdout = stdout
        self._stderr = stderr

    @property
    def stdout(self) -> TextIO:
        # Resolved lazily so pytest's capsys sees the writes
        return self._stdout or sys.stdout

    @property
    def stderr(self) -> TextIO:
        return self._stderr or sys.stderr

    def _paint(self, style: str, text: str) -> str:
        if not self.color or style not in COLORS:
            return text
        return f"{COLORS[style]}{text}{RESET}"

    def _out(self, text: str) -> None:
        print(text, file=self.stdout, flush=True)

    def _err(self, text: str) -> None:
        print(text, file=self.stderr, flush=True)

    def playbook(self, path: str) -> None:
        self._out(f"PLAYBOOK: {path}")

    def play(self, name: str, host: str) -> None:
        """Print play banner for one host run."""
        self._out(f"\nPLAY [{name}] [{host}] " + "*" * 50)

    def task(self, name: str) -> None:
        """Print task banner."""
        self._out(f"\nTASK [{name}] " + "-" * 50)

    def command(self, command: str) -> None:
        """Echo a command line about to run."""
        self._out(self._paint('command', f"> {command}"))

    def command_output(self, stdout: str, stderr: str) -> None:
        """Show a command's captured output."""
        if stdout:
            self._out(stdout)
        if stderr:
            self._err(self._paint('failed', stderr))

    def debug(self, msg: str) -> None:
        """Emit a rendered debug message."""
        self._out(self._paint('debug', msg))

    def host_result(self, result: TaskResult) -> None:
        """Print result status for a host."""
        status = result.status.value
        line = f"{self._paint(status, f'{status}: [{result.host}]')}"
        if result.status == TaskStatus.SKIPPED and result.msg:
            line += f" => {result.msg}"
        self._out(line)

    def failure(self, result: TaskResult) -> None:
        """Report a failed task with enough context to locate it."""
        kind = result.error_kind or "TaskFailed"
        message = str(result.error) if result.error is not None else result.msg
        self._err(self._paint(
            'failed',
            f"ERROR: play '{result.play_name}', host '{result.host}', "
            f"task '{result.task_name}': {kind}: {message}"
        ))

    def warning(self, msg: str) -> None:
        """Print a warning message."""
        self._err(self._paint('warning', f"[WARNING]: {msg}"))

    def error(self, msg: str) -> None:
        """Print a fatal error message."""
        self._err(self._paint('failed', msg))

    def recap(self, host_stats: Dict[str, HostStats]) -> None:
        """Print final recap."""
        self._out("\nPLAY RECAP " + "*" * 60)

        for host, stats in sorted(host_stats.items()):
            status_parts = [
                self._paint('ok', f"ok={stats.ok}"),
                self._paint('changed', f"changed={stats.changed}"),
                self._paint('failed', f"failed={stats.failed}") if stats.failed else f"failed={stats.failed}",
                self._paint('skipped', f"skipped={stats.skipped}"),
            ]
            self._out(f"{host:40} : " + "  ".join(status_parts))
