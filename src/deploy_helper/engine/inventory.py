"""
deploy-helper Inventory Manager

Loads the server configuration file and resolves a play's ``hosts``
selector into concrete hosts.

Format (``servers.yml``)::

    hosts:
      my_host:
        host: 10.0.0.5
        port: 22
        user: deploy
        ssh_key_path: ~/.ssh/id_ed25519
      local:
        host: localhost
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from deploy_helper.engine.errors import InventoryError, UnknownHostGroupError
from deploy_helper.engine.values import from_config


LOCAL_ADDRESSES = {'localhost', '127.0.0.1', '::1'}

# Names that resolve to the control node even without an inventory entry
IMPLICIT_LOCAL_NAMES = {'localhost', 'local'}


class Host:
    """Represents a single concrete execution target."""

    def __init__(
        self,
        name: str,
        address: Optional[str] = None,
        port: int = 22,
        user: Optional[str] = None,
        password: Optional[str] = None,
        ssh_key_path: Optional[str] = None,
        connection: Optional[str] = None,
    ):
        self.name = name
        self.address = address or name
        self.port = port
        self.user = user
        self.password = password
        self.ssh_key_path = ssh_key_path
        self.connection = connection or ('local' if self.address in LOCAL_ADDRESSES else 'ssh')

    @property
    def is_local(self) -> bool:
        """Whether commands run on the control node."""
        return self.connection == 'local'

    @classmethod
    def from_config(cls, name: str, data: Dict[str, Any]) -> "Host":
        """Build a host from its inventory entry."""
        if not isinstance(data, dict):
            raise InventoryError(
                f"Host '{name}' must be a mapping, got {type(data).__name__}"
            )
        if 'host' not in data:
            raise InventoryError(f"Host '{name}' missing required 'host' field")

        try:
            port = int(data.get('port') or 22)
        except (TypeError, ValueError):
            raise InventoryError(f"Host '{name}' has an invalid port: {data.get('port')!r}")

        host = cls(
            name=name,
            address=str(data['host']),
            port=port,
            user=data.get('user'),
            password=data.get('password'),
            ssh_key_path=data.get('ssh_key_path'),
            connection=data.get('connection'),
        )
        host.validate()
        return host

    def validate(self) -> None:
        """Check that a remote host has what the SSH connection needs."""
        if self.is_local:
            return
        if not self.user:
            raise InventoryError(f"Missing user for remote host '{self.name}'")
        if not self.password and not self.ssh_key_path:
            raise InventoryError(
                f"Either ssh_key_path or password must be provided for host '{self.name}'"
            )

    def __repr__(self) -> str:
        return f"Host({self.name!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Host):
            return NotImplemented
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)


class InventoryManager:
    """
    Manages inventory hosts.

    A missing inventory file is not an error: only the implicit local
    names then resolve.
    """

    def __init__(self):
        self.hosts: Dict[str, Host] = {}
        self.source: Optional[str] = None

    def parse(self, source: Union[str, Path, None]) -> None:
        """
        Load hosts from an inventory file.

        Raises:
            InventoryError: If the file cannot be parsed
        """
        if source is None:
            return

        path = Path(source)
        self.source = str(path)
        if not path.exists():
            return

        try:
            data = from_config(yaml.safe_load(path.read_text(encoding='utf-8')))
        except yaml.YAMLError as e:
            raise InventoryError(f"YAML syntax error: {e}", file_path=str(path))

        self.load_data(data)

    def load_data(self, data: Any) -> None:
        """Load hosts from an already-parsed inventory tree."""
        if data is None:
            return
        if not isinstance(data, dict) or not isinstance(data.get('hosts', {}), dict):
            raise InventoryError(
                "Inventory must be a mapping with a 'hosts' mapping",
                file_path=self.source
            )

        for name, host_data in (data.get('hosts') or {}).items():
            self.add_host(Host.from_config(name, host_data))

    def add_host(self, host: Host) -> None:
        """Add a host to the inventory."""
        self.hosts[host.name] = host

    def get_hosts(self, selector: str) -> List[Host]:
        """
        Resolve a hosts selector into hosts.

        The selector is a comma-separated list of host names; ``all``
        expands to every inventory host. Order follows the selector and
        duplicates are dropped.

        Raises:
            UnknownHostGroupError: If any name is unknown or nothing matches
        """
        resolved: List[Host] = []
        missing: List[str] = []

        for name in (part.strip() for part in selector.split(',')):
            if not name:
                continue
            if name == 'all':
                candidates = list(self.hosts.values())
            elif name in self.hosts:
                candidates = [self.hosts[name]]
            elif name in IMPLICIT_LOCAL_NAMES:
                candidates = [Host(name, address='localhost', connection='local')]
            else:
                missing.append(name)
                continue

            for host in candidates:
                if host not in resolved:
                    resolved.append(host)

        if missing or not resolved:
            raise UnknownHostGroupError(selector, missing, file_path=self.source)

        return resolved
