"""
Unit tests for console output.
"""

import io

from deploy_helper.engine.errors import UndefinedVariableError
from deploy_helper.engine.output import Output
from deploy_helper.engine.results import HostStats, TaskResult, TaskStatus


def make_output(color=False):
    return Output(color=color, stdout=io.StringIO(), stderr=io.StringIO())


class TestOutput:
    """Tests for banners, results and recap."""

    def test_banners(self):
        output = make_output()
        output.play("Deploy", "web1")
        output.task("Build")
        text = output.stdout.getvalue()
        assert "PLAY [Deploy] [web1]" in text
        assert "TASK [Build]" in text

    def test_host_result(self):
        output = make_output()
        output.host_result(TaskResult(host="web1", task_name="t", status=TaskStatus.CHANGED))
        output.host_result(TaskResult(host="web1", task_name="t", status=TaskStatus.SKIPPED, msg="cond"))
        assert output.stdout.getvalue() == "changed: [web1]\nskipped: [web1] => cond\n"

    def test_failure_goes_to_stderr(self):
        output = make_output()
        result = TaskResult(
            host="web1",
            task_name="Render",
            play_name="Deploy",
            status=TaskStatus.FAILED,
            error=UndefinedVariableError("release"),
        )
        output.failure(result)

        assert output.stdout.getvalue() == ""
        assert output.stderr.getvalue() == (
            "ERROR: play 'Deploy', host 'web1', task 'Render': "
            "UndefinedVariableError: Undefined variable: 'release'\n"
        )

    def test_failure_without_exception(self):
        output = make_output()
        output.failure(TaskResult(host="h", task_name="t", status=TaskStatus.FAILED, msg="bad"))
        assert "TaskFailed: bad" in output.stderr.getvalue()

    def test_recap(self):
        output = make_output()
        output.recap({"web1": HostStats("web1", ok=2, changed=1, failed=1)})
        line = output.stdout.getvalue().splitlines()[-1]
        assert line.startswith("web1")
        assert "ok=2  changed=1  failed=1  skipped=0" in line

    def test_color(self):
        output = make_output(color=True)
        output.debug("hi")
        assert output.stdout.getvalue() == "\033[34mhi\033[0m\n"

    def test_no_color_env(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "1")
        assert Output().color is False

    def test_default_streams(self, capsys):
        Output(color=False).debug("to stdout")
        Output(color=False).warning("careful")
        captured = capsys.readouterr()
        assert captured.out == "to stdout\n"
        assert captured.err == "[WARNING]: careful\n"
