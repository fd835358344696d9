"""
vmdriver - vSphere virtual machine lifecycle driver
Clone templates into placed VMs, drive power state, and query runtime state
"""

__version__ = "0.1.0"
__author__ = "vmdriver Development Team"

from .client import Driver
from .config import ConnectConfig, WaitPolicy, VirtualMachineConfig, load_config
from .exceptions import (
    DriverError, ConnectionError, AuthenticationError, ResolutionError, NotFoundError,
    AmbiguousPathError, IntegrityError, QueryError, ObjectGoneError, UnrequestedPropertyError,
    TaskError, TaskTimeoutError, CancelledError, CloneError, ClonePreconditionError,
    PowerError, PowerTimeoutError, PowerRejectedError, VerificationError,
)
from .infrastructure.vsphere import (
    ObjectReference, VirtualMachine, ResourcePool, CloneSpec, CloneKind, PowerState,
    VMProperty, PropertyBag, DiskChain,
)

__all__ = [
    "Driver",
    "ConnectConfig",
    "WaitPolicy",
    "VirtualMachineConfig",
    "load_config",
    "ObjectReference",
    "VirtualMachine",
    "ResourcePool",
    "CloneSpec",
    "CloneKind",
    "PowerState",
    "VMProperty",
    "PropertyBag",
    "DiskChain",
    "DriverError",
    "ConnectionError",
    "AuthenticationError",
    "ResolutionError",
    "NotFoundError",
    "AmbiguousPathError",
    "IntegrityError",
    "QueryError",
    "ObjectGoneError",
    "UnrequestedPropertyError",
    "TaskError",
    "TaskTimeoutError",
    "CancelledError",
    "CloneError",
    "ClonePreconditionError",
    "PowerError",
    "PowerTimeoutError",
    "PowerRejectedError",
    "VerificationError",
]
