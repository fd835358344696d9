"""
vSphere infrastructure provider for vmdriver
"""

from .client import VSphereClient
from .references import ObjectReference
from .properties import PropertyCollector, PropertyBag, VMProperty, PowerState, DiskChain
from .resolver import ObjectReferenceResolver, ResourcePool
from .tasks import TaskWaiter
from .vm import VirtualMachine
from .power import PowerStateController
from .cloner import VirtualMachineCloner, CloneSpec, CloneKind, verify_clone

__all__ = [
    'VSphereClient',
    'ObjectReference',
    'PropertyCollector',
    'PropertyBag',
    'VMProperty',
    'PowerState',
    'DiskChain',
    'ObjectReferenceResolver',
    'ResourcePool',
    'TaskWaiter',
    'VirtualMachine',
    'PowerStateController',
    'VirtualMachineCloner',
    'CloneSpec',
    'CloneKind',
    'verify_clone',
]
