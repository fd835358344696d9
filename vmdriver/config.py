"""
Connection, polling and provisioning configuration
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Dict, Any

import yaml


@dataclass(frozen=True)
class ConnectConfig:
    """Already-resolved connection parameters for one endpoint"""
    server: str
    username: str
    password: str
    insecure: bool = False  # skip certificate verification, lab use only
    port: int = 443
    datacenter: Optional[str] = None

    def __post_init__(self):
        if not self.server:
            raise ValueError("server is required")
        if not self.username:
            raise ValueError("username is required")

    def __repr__(self) -> str:
        return (f"ConnectConfig(server={self.server!r}, username={self.username!r}, "
                f"insecure={self.insecure!r}, port={self.port!r}, "
                f"datacenter={self.datacenter!r})")


@dataclass(frozen=True)
class WaitPolicy:
    """Timing for poll loops over remote tasks and properties"""
    timeout: float = 1800.0
    interval: float = 2.0
    backoff: float = 1.5
    max_interval: float = 30.0

    def __post_init__(self):
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.interval <= 0:
            raise ValueError("interval must be positive")
        if self.backoff < 1:
            raise ValueError("backoff must be >= 1")

    def next_interval(self, current: float) -> float:
        return min(current * self.backoff, self.max_interval)

    def with_timeout(self, timeout: float) -> 'WaitPolicy':
        return WaitPolicy(timeout=timeout, interval=self.interval,
                          backoff=self.backoff, max_interval=self.max_interval)


@dataclass(frozen=True)
class VirtualMachineConfig:
    """Declarative description of one machine to provision"""
    name: str
    image: str
    host: Optional[str] = None
    resource_pool: Optional[str] = None
    folder: Optional[str] = None
    datastore: Optional[str] = None
    linked_clone: bool = False
    power_on: bool = True

    def __post_init__(self):
        if not self.name:
            raise ValueError("name is required")
        if not self.image:
            raise ValueError("image is required")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VirtualMachineConfig':
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        unknown = set(data) - set(known)
        if unknown:
            raise ValueError(f"Unknown virtual machine settings: {', '.join(sorted(unknown))}")
        return cls(**known)


def load_config(path: str) -> Tuple[ConnectConfig, Optional[VirtualMachineConfig]]:
    """
    Load connection and machine settings from a YAML file

    Expected layout::

        vsphere:
          server: vcenter.example.com
          username: administrator@vsphere.local
          password: secret
          insecure: false
        virtual_machine:
          name: vm-1
          image: basic
          linked_clone: true

    The ``virtual_machine`` section is optional.
    """
    with open(path) as f:
        document = yaml.safe_load(f) or {}

    if not isinstance(document, dict) or 'vsphere' not in document:
        raise ValueError(f"{path}: missing 'vsphere' section")

    vsphere = document['vsphere']
    connect_config = ConnectConfig(
        server=vsphere.get('server', ''),
        username=vsphere.get('username', ''),
        password=vsphere.get('password', ''),
        insecure=bool(vsphere.get('insecure', False)),
        port=int(vsphere.get('port', 443)),
        datacenter=vsphere.get('datacenter'),
    )

    vm_config = None
    if document.get('virtual_machine'):
        vm_config = VirtualMachineConfig.from_dict(document['virtual_machine'])

    return connect_config, vm_config
