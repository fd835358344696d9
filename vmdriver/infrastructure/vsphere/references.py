"""
Managed object references detached from any session
"""

from dataclasses import dataclass
from typing import Any

from pyVmomi import vim, VmomiSupport

from ...exceptions import ResolutionError

VIM_NAMESPACE = 'urn:vim25'

VIRTUAL_MACHINE = 'VirtualMachine'
RESOURCE_POOL = 'ResourcePool'
VIRTUAL_APP = 'VirtualApp'
HOST_SYSTEM = 'HostSystem'
COMPUTE_RESOURCE = 'ComputeResource'
CLUSTER_COMPUTE_RESOURCE = 'ClusterComputeResource'
FOLDER = 'Folder'
DATACENTER = 'Datacenter'
DATASTORE = 'Datastore'
TASK = 'Task'

POOL_KINDS = (RESOURCE_POOL, VIRTUAL_APP)
COMPUTE_KINDS = (COMPUTE_RESOURCE, CLUSTER_COMPUTE_RESOURCE)


@dataclass(frozen=True)
class ObjectReference:
    """(kind, id) pair naming one inventory object, e.g. VirtualMachine:vm-42"""
    kind: str
    value: str

    def __post_init__(self):
        if not self.kind or not self.value:
            raise ValueError("ObjectReference needs both kind and value")

    def __str__(self) -> str:
        return f"{self.kind}:{self.value}"

    @classmethod
    def parse(cls, text: str, default_kind: str = VIRTUAL_MACHINE) -> 'ObjectReference':
        """Parse ``Kind:id`` or a bare id, which takes ``default_kind``"""
        if ':' in text:
            kind, _, value = text.partition(':')
            return cls(kind, value)
        return cls(default_kind, text)

    @classmethod
    def from_managed_object(cls, mo: Any) -> 'ObjectReference':
        return cls(mo._wsdlName, mo._moId)

    def to_managed_object(self, stub=None):
        """Build a pyVmomi stub object for this reference bound to ``stub``"""
        return managed_type(self.kind)(self.value, stub)


def is_managed_object(value: Any) -> bool:
    return isinstance(value, vim.ManagedObject)


def detach(value: Any) -> Any:
    """Replace managed objects (or lists of them) with ObjectReferences"""
    if is_managed_object(value):
        return ObjectReference.from_managed_object(value)
    if isinstance(value, (list, tuple)) and value and all(is_managed_object(v) for v in value):
        return [ObjectReference.from_managed_object(v) for v in value]
    return value


def managed_type(kind: str):
    """pyVmomi class for a managed object kind, e.g. ``HostSystem``"""
    try:
        return VmomiSupport.GetWsdlType(VIM_NAMESPACE, kind)
    except KeyError:
        raise ResolutionError(f"Unknown managed object kind '{kind}'")
