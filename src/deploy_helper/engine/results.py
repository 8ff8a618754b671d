"""
deploy-helper Result Classes

Data structures for task, play, and playbook execution results.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum


class TaskStatus(Enum):
    """Status of a task execution."""
    OK = "ok"
    CHANGED = "changed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class TaskResult:
    """Result of executing a single task on a single host."""

    host: str
    task_name: str
    status: TaskStatus
    play_name: str = ""
    changed: bool = False
    rc: int = 0
    stdout: str = ""
    stderr: str = ""
    msg: str = ""
    # Error that failed the task, if any
    error: Optional[Exception] = None
    # Additional module-specific results
    results: Dict[str, Any] = field(default_factory=dict)
    # For loop results
    loop_results: Optional[List['TaskResult']] = None

    @property
    def error_kind(self) -> str:
        """Name of the failure's error type, or empty."""
        if self.error is None:
            return ""
        return type(self.error).__name__

    def to_value(self) -> Dict[str, Any]:
        """
        Value stored under a task's ``register`` name.

        Command results carry stdout/stderr/return_code/success; modules
        may add keys through ``results`` (debug adds ``msg``).
        """
        value: Dict[str, Any] = {
            'stdout': self.stdout,
            'stderr': self.stderr,
            'return_code': self.rc,
            'rc': self.rc,
            'success': self.rc == 0 and not self.failed,
            'changed': self.changed,
            'stdout_lines': self.stdout.splitlines(),
            'stderr_lines': self.stderr.splitlines(),
        }
        value.update(self.results)
        if self.loop_results is not None:
            value['results'] = [r.to_value() for r in self.loop_results]
        return value

    @property
    def failed(self) -> bool:
        """Check if the task failed."""
        return self.status == TaskStatus.FAILED


@dataclass
class HostStats:
    """Statistics for a single host across all tasks."""

    host: str
    ok: int = 0
    changed: int = 0
    failed: int = 0
    skipped: int = 0

    def record(self, status: TaskStatus) -> None:
        """Record a task result status."""
        if status == TaskStatus.OK:
            self.ok += 1
        elif status == TaskStatus.CHANGED:
            self.changed += 1
        elif status == TaskStatus.FAILED:
            self.failed += 1
        elif status == TaskStatus.SKIPPED:
            self.skipped += 1

    def merge(self, other: 'HostStats') -> None:
        """Merge another HostStats into this one."""
        self.ok += other.ok
        self.changed += other.changed
        self.failed += other.failed
        self.skipped += other.skipped

    @property
    def has_failures(self) -> bool:
        """Check if host has any failures."""
        return self.failed > 0


@dataclass
class PlayResult:
    """Result of executing a single play."""

    play_name: str
    hosts: List[str]
    task_results: List[TaskResult] = field(default_factory=list)
    host_stats: Dict[str, HostStats] = field(default_factory=dict)

    def add_result(self, result: TaskResult) -> None:
        """Add a task result."""
        self.task_results.append(result)

        if result.host not in self.host_stats:
            self.host_stats[result.host] = HostStats(result.host)
        self.host_stats[result.host].record(result.status)

    def results_for(self, host: str) -> List[TaskResult]:
        """Task results of one host, in execution order."""
        return [r for r in self.task_results if r.host == host]

    @property
    def has_failures(self) -> bool:
        """Check if any host failed in this play."""
        return any(s.has_failures for s in self.host_stats.values())


@dataclass
class PlaybookResult:
    """Result of executing an entire playbook."""

    playbook_path: str
    play_results: List[PlayResult] = field(default_factory=list)

    def add_play_result(self, result: PlayResult) -> None:
        """Add a play result."""
        self.play_results.append(result)

    def get_final_stats(self) -> Dict[str, HostStats]:
        """Get aggregated stats for all hosts across all plays."""
        final_stats: Dict[str, HostStats] = {}

        for play_result in self.play_results:
            for host, stats in play_result.host_stats.items():
                if host not in final_stats:
                    final_stats[host] = HostStats(host)
                final_stats[host].merge(stats)

        return final_stats

    @property
    def success(self) -> bool:
        """Check if the entire playbook succeeded."""
        return not any(p.has_failures for p in self.play_results)

    @property
    def exit_code(self) -> int:
        """Get appropriate exit code."""
        return 0 if self.success else 2
