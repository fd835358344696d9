"""
VirtualMachine handle bound to a session
"""

import threading
from typing import List, Optional, Union

from ...config import WaitPolicy
from .client import VSphereClient
from .properties import PropertyCollector, PropertyBag, PropertyPath, VMProperty, PowerState, DiskChain
from .references import ObjectReference, VIRTUAL_MACHINE
from .tasks import poll_until


class VirtualMachine:
    """
    Binds a VirtualMachine reference to a session.

    Holds no cached state: every query goes to the endpoint. The reference id
    is what callers persist; :meth:`from_reference` rebuilds an equivalent
    handle from it.
    """

    def __init__(self, vsphere_client: VSphereClient, ref: ObjectReference,
                 collector: Optional[PropertyCollector] = None):
        if ref.kind != VIRTUAL_MACHINE:
            raise ValueError(f"{ref} is not a virtual machine reference")
        self.client = vsphere_client
        self.ref = ref
        self.collector = collector or PropertyCollector(vsphere_client)

    @classmethod
    def from_reference(cls, vsphere_client: VSphereClient,
                       ref: Union[ObjectReference, str],
                       collector: Optional[PropertyCollector] = None) -> 'VirtualMachine':
        """Handle for a persisted id such as ``vm-42`` or a full reference"""
        if isinstance(ref, str):
            ref = ObjectReference.parse(ref, default_kind=VIRTUAL_MACHINE)
        return cls(vsphere_client, ref, collector)

    def reference(self) -> ObjectReference:
        return self.ref

    @property
    def id(self) -> str:
        return self.ref.value

    def info(self, *paths: PropertyPath) -> PropertyBag:
        return self.collector.fetch(self.ref, *paths)

    def name(self) -> str:
        return self.info(VMProperty.NAME).name

    def ip_address(self) -> Optional[str]:
        return self.info(VMProperty.IP_ADDRESS).ip_address

    def power_state(self) -> PowerState:
        return self.info(VMProperty.POWER_STATE).power_state

    def resource_pool(self) -> Optional[ObjectReference]:
        return self.info(VMProperty.RESOURCE_POOL).resource_pool

    def disk_chains(self) -> List[DiskChain]:
        return self.info(VMProperty.DISK_LAYOUT).disk_chains

    def wait_for_ip(self, policy: Optional[WaitPolicy] = None,
                    cancel: Optional[threading.Event] = None) -> str:
        """Poll guest.ipAddress until the guest reports one"""
        policy = policy or WaitPolicy(timeout=600.0)
        return poll_until(self.ip_address, policy, f"IP address of {self.ref}",
                          cancel=cancel, details={'vm': self.ref})

    def __eq__(self, other) -> bool:
        return isinstance(other, VirtualMachine) and other.ref == self.ref

    def __hash__(self) -> int:
        return hash(self.ref)

    def __repr__(self) -> str:
        return f"VirtualMachine({self.ref})"
