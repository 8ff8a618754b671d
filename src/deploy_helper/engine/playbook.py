"""
deploy-helper Playbook Parser

Parses YAML playbooks into executable Play and Task objects, validating
the generic YAML tree against the playbook schema.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from deploy_helper.engine.errors import ParseError, PlaybookSchemaError
from deploy_helper.engine.values import from_config


# Play keys that are understood
PLAY_KEYWORDS = {'name', 'hosts', 'vars', 'chdir', 'tasks'}

# Task keys that are NOT module names
TASK_KEYWORDS = {
    'name', 'vars', 'register', 'when', 'loop', 'with_items', 'chdir',
    'include_tasks',
}


@dataclass
class Task:
    """Represents a single task in a playbook."""

    name: str
    module: Optional[str] = None  # None for a vars-only task
    args: Any = None
    vars: Dict[str, Any] = field(default_factory=dict)
    register: Optional[str] = None
    when: Optional[Any] = None
    loop: Optional[Any] = None
    chdir: Optional[str] = None

    def __repr__(self) -> str:
        return f"Task(name={self.name!r}, module={self.module!r})"


@dataclass
class Play:
    """Represents a single play in a playbook."""

    name: str
    hosts: str
    tasks: List[Task] = field(default_factory=list)
    vars: Dict[str, Any] = field(default_factory=dict)
    chdir: Optional[str] = None

    def __repr__(self) -> str:
        return f"Play(name={self.name!r}, hosts={self.hosts!r}, tasks={len(self.tasks)})"


class PlaybookParser:
    """
    Parse YAML playbooks into Play and Task objects.

    The file is a YAML document stream; each document holds a list of plays
    (a single mapping is accepted as one play). ``include_tasks`` entries
    are expanded in place at parse time, relative to the playbook directory.
    """

    def __init__(self, playbook_path: Union[str, Path]):
        self.playbook_path = Path(playbook_path)
        self.plays: List[Play] = []
        self._base_dir = self.playbook_path.parent
        self._include_stack: List[Path] = []

    def parse(self) -> List[Play]:
        """
        Parse the playbook file.

        Returns:
            List of Play objects

        Raises:
            ParseError: If the file is missing or is not valid YAML
            PlaybookSchemaError: If the YAML does not describe a playbook
        """
        documents = self._load_yaml_stream(self.playbook_path)

        all_plays: List[Any] = []
        for doc in documents:
            if doc is None:
                continue
            if isinstance(doc, list):
                all_plays.extend(doc)
            elif isinstance(doc, dict):
                all_plays.append(doc)
            else:
                raise PlaybookSchemaError(
                    f"A playbook document must be a list of plays, got {type(doc).__name__}",
                    file_path=str(self.playbook_path)
                )

        for play_data in all_plays:
            self.plays.append(self._parse_play(play_data))

        return self.plays

    def parse_data(self, data: Any) -> List[Play]:
        """Validate an already-loaded YAML tree (list of plays)."""
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            raise PlaybookSchemaError(
                f"A playbook must be a list of plays, got {type(data).__name__}",
                file_path=str(self.playbook_path)
            )
        self.plays = [self._parse_play(play_data) for play_data in data]
        return self.plays

    def _load_yaml_stream(self, path: Path) -> List[Any]:
        if not path.exists():
            raise ParseError(
                f"File not found: {path}",
                file_path=str(self.playbook_path)
            )

        content = path.read_text(encoding='utf-8')

        try:
            return [from_config(doc) for doc in yaml.safe_load_all(content)]
        except yaml.YAMLError as e:
            raise ParseError(
                f"YAML syntax error: {e}",
                file_path=str(path)
            )

    def _parse_play(self, data: Any) -> Play:
        """Parse a single play from YAML data."""
        if not isinstance(data, dict):
            raise PlaybookSchemaError(
                f"A play must be a mapping, got {type(data).__name__}",
                file_path=str(self.playbook_path)
            )

        name = self._string_field(data, 'name', 'Unnamed play')

        unknown = [key for key in data if key not in PLAY_KEYWORDS]
        if unknown:
            raise PlaybookSchemaError(
                f"Unrecognized play keys: {', '.join(unknown)}",
                file_path=str(self.playbook_path),
                play=name
            )

        # Required: hosts
        if 'hosts' not in data:
            raise PlaybookSchemaError(
                "Play missing required 'hosts' field",
                file_path=str(self.playbook_path),
                play=name
            )
        hosts = data['hosts']
        if isinstance(hosts, list):
            hosts = ','.join(str(h) for h in hosts)
        if not isinstance(hosts, str) or not hosts.strip():
            raise PlaybookSchemaError(
                "'hosts' must be a non-empty string",
                file_path=str(self.playbook_path),
                play=name
            )

        if 'tasks' not in data:
            raise PlaybookSchemaError(
                "Play missing required 'tasks' field",
                file_path=str(self.playbook_path),
                play=name
            )

        play = Play(
            name=name,
            hosts=hosts.strip(),
            vars=self._mapping_field(data, 'vars', play=name),
            chdir=self._optional_string(data, 'chdir', play=name),
        )
        play.tasks = self._parse_task_list(data['tasks'], play_name=name)
        return play

    def _parse_task_list(self, tasks_data: Any, play_name: str) -> List[Task]:
        if tasks_data is None:
            return []
        if not isinstance(tasks_data, list):
            raise PlaybookSchemaError(
                f"'tasks' must be a list, got {type(tasks_data).__name__}",
                file_path=str(self.playbook_path),
                play=play_name
            )

        tasks: List[Task] = []
        for task_data in tasks_data:
            if isinstance(task_data, dict) and 'include_tasks' in task_data:
                tasks.extend(self._parse_include_tasks(task_data, play_name))
            else:
                tasks.append(self._parse_task(task_data, play_name))
        return tasks

    def _parse_include_tasks(self, data: Dict[str, Any], play_name: str) -> List[Task]:
        """
        Parse an include_tasks directive.

        Included tasks inherit the directive's ``when`` and ``chdir``.
        """
        tasks_file = data.get('include_tasks')
        if isinstance(tasks_file, dict):
            tasks_file = tasks_file.get('file')

        if not tasks_file or not isinstance(tasks_file, str):
            raise PlaybookSchemaError(
                "include_tasks requires a file path",
                file_path=str(self.playbook_path),
                play=play_name
            )

        tasks_path = (self._base_dir / tasks_file).resolve()
        if tasks_path in self._include_stack:
            raise PlaybookSchemaError(
                f"Recursive include_tasks: {tasks_file}",
                file_path=str(self.playbook_path),
                play=play_name
            )

        documents = self._load_yaml_stream(tasks_path)
        tasks_data: List[Any] = []
        for doc in documents:
            if doc is None:
                continue
            if not isinstance(doc, list):
                raise PlaybookSchemaError(
                    f"Tasks file must contain a list: {tasks_file}",
                    file_path=str(self.playbook_path),
                    play=play_name
                )
            tasks_data.extend(doc)

        self._include_stack.append(tasks_path)
        try:
            tasks = self._parse_task_list(tasks_data, play_name)
        finally:
            self._include_stack.pop()

        include_when = data.get('when')
        include_chdir = data.get('chdir')
        for task in tasks:
            # Apply include-level when condition
            if include_when is not None:
                if task.when is not None:
                    task.when = f"({self._join_when(include_when)}) and ({self._join_when(task.when)})"
                else:
                    task.when = include_when
            if include_chdir and not task.chdir:
                task.chdir = include_chdir

        return tasks

    def _parse_task(self, data: Any, play_name: str) -> Task:
        """Parse a single task from YAML data."""
        if not isinstance(data, dict):
            raise PlaybookSchemaError(
                f"A task must be a mapping, got {type(data).__name__}",
                file_path=str(self.playbook_path),
                play=play_name
            )

        # Find the module and its args
        module_keys = [key for key in data if key not in TASK_KEYWORDS]
        if len(module_keys) > 1:
            raise PlaybookSchemaError(
                f"Task has more than one module: {', '.join(module_keys)}",
                file_path=str(self.playbook_path),
                play=play_name,
                task=data.get('name')
            )

        module_name = module_keys[0] if module_keys else None
        module_args = data[module_name] if module_name else None

        if module_name is None and 'vars' not in data:
            raise PlaybookSchemaError(
                f"Task has no module and no vars: {list(data.keys())}",
                file_path=str(self.playbook_path),
                play=play_name,
                task=data.get('name')
            )

        name = self._string_field(data, 'name', f'{module_name or "vars"} task')

        # Parse loop/with_items
        loop = data.get('loop', data.get('with_items'))

        # Parse when condition
        when = data.get('when')
        if when is not None and not isinstance(when, (str, bool)):
            if isinstance(when, list):
                when = self._join_when(when)
            else:
                when = str(when)

        register = data.get('register')
        if register is not None and (not isinstance(register, str) or not register.isidentifier()):
            raise PlaybookSchemaError(
                f"'register' must be a variable name, got {register!r}",
                file_path=str(self.playbook_path),
                play=play_name,
                task=name
            )

        return Task(
            name=name,
            module=module_name,
            args=module_args,
            vars=self._mapping_field(data, 'vars', play=play_name, task=name),
            register=register,
            when=when,
            loop=loop,
            chdir=self._optional_string(data, 'chdir', play=play_name, task=name),
        )

    @staticmethod
    def _join_when(when: Any) -> str:
        """AND together a list of conditions."""
        if isinstance(when, list):
            return ' and '.join(f"({w})" for w in when)
        return str(when)

    def _string_field(self, data: Dict[str, Any], key: str, default: str) -> str:
        value = data.get(key)
        if value is None:
            return default
        return str(value)

    def _optional_string(
        self,
        data: Dict[str, Any],
        key: str,
        play: Optional[str] = None,
        task: Optional[str] = None,
    ) -> Optional[str]:
        value = data.get(key)
        if value is None:
            return None
        if not isinstance(value, str):
            raise PlaybookSchemaError(
                f"'{key}' must be a string, got {type(value).__name__}",
                file_path=str(self.playbook_path),
                play=play,
                task=task
            )
        return value

    def _mapping_field(
        self,
        data: Dict[str, Any],
        key: str,
        play: Optional[str] = None,
        task: Optional[str] = None,
    ) -> Dict[str, Any]:
        value = data.get(key)
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise PlaybookSchemaError(
                f"'{key}' must be a dictionary, got {type(value).__name__}",
                file_path=str(self.playbook_path),
                play=play,
                task=task
            )
        return value
