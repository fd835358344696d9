"""
Cloning virtual machines from templates
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from pyVmomi import vim, vmodl

from ...config import WaitPolicy
from ...exceptions import (
    DriverError, CloneError, ClonePreconditionError, ObjectGoneError, VerificationError,
)
from .client import VSphereClient
from .power import PowerStateController
from .properties import PropertyCollector, PowerState, VMProperty, DiskChain, fault_message
from .references import (
    ObjectReference, VIRTUAL_MACHINE, FOLDER, HOST_SYSTEM, DATASTORE, POOL_KINDS,
)
from .tasks import TaskWaiter
from .vm import VirtualMachine


logger = logging.getLogger(__name__)


class CloneKind(str, Enum):
    FULL = 'full'
    LINKED = 'linked'


def expected_chain_length(kind: CloneKind) -> int:
    """Disk backing generations a fresh clone of ``kind`` must have"""
    return 2 if CloneKind(kind) == CloneKind.LINKED else 1


@dataclass(frozen=True)
class CloneSpec:
    """One clone request with every placement already resolved"""
    source: ObjectReference
    name: str
    folder: ObjectReference
    resource_pool: ObjectReference
    host: Optional[ObjectReference] = None
    datastore: Optional[ObjectReference] = None
    kind: CloneKind = CloneKind.FULL
    power_state: PowerState = PowerState.OFF

    def __post_init__(self):
        if not self.name:
            raise ValueError("Clone name is required")
        if self.source.kind != VIRTUAL_MACHINE:
            raise ValueError(f"Clone source {self.source} is not a virtual machine")
        if self.folder.kind != FOLDER:
            raise ValueError(f"Clone folder {self.folder} is not a folder")
        if self.resource_pool.kind not in POOL_KINDS:
            raise ValueError(f"{self.resource_pool} is not a resource pool")
        if self.host is not None and self.host.kind != HOST_SYSTEM:
            raise ValueError(f"{self.host} is not a host")
        if self.datastore is not None and self.datastore.kind != DATASTORE:
            raise ValueError(f"{self.datastore} is not a datastore")
        if PowerState(self.power_state) not in (PowerState.ON, PowerState.OFF):
            raise ValueError(f"Cannot clone into power state {self.power_state}")
        # Normalize plain strings passed for the enums
        object.__setattr__(self, 'kind', CloneKind(self.kind))
        object.__setattr__(self, 'power_state', PowerState(self.power_state))

    @property
    def linked(self) -> bool:
        return self.kind == CloneKind.LINKED


class VirtualMachineCloner:
    """
    Submits CloneVM_Task for a CloneSpec and waits for the new VM.

    Linked clones are created as child disk backings of the source's
    current snapshot, so the source must have one.
    """

    def __init__(self, vsphere_client: VSphereClient, collector: PropertyCollector,
                 waiter: Optional[TaskWaiter] = None,
                 power: Optional[PowerStateController] = None,
                 policy: Optional[WaitPolicy] = None):
        self.client = vsphere_client
        self.collector = collector
        self.policy = policy or WaitPolicy()
        self.waiter = waiter or TaskWaiter(vsphere_client, collector, self.policy)
        self.power = power or PowerStateController(vsphere_client, collector)

    def clone(self, spec: CloneSpec, cancel: Optional[threading.Event] = None,
              policy: Optional[WaitPolicy] = None) -> VirtualMachine:
        """
        Clone ``spec.source`` and return a handle to the new VM

        Raises:
            ClonePreconditionError: a reference is gone, or a linked clone
                was requested from a source without a snapshot
            CloneError: the endpoint rejected or failed the clone task
            CancelledError: ``cancel`` was set while the task was running
            TaskTimeoutError: the task did not finish within the policy timeout
            PowerError: powering on the new VM failed; ``details["vm"]`` names it
        """
        snapshot = self._validate(spec)
        clone_spec = self._build_clone_spec(spec, snapshot)
        source = self.client.reference(spec.source)
        folder = self.client.reference(spec.folder)

        try:
            task = self.client.invoke(source.CloneVM_Task, folder=folder, name=spec.name,
                                      spec=clone_spec)
        except vmodl.MethodFault as e:
            raise CloneError(f"Clone of {spec.source} to '{spec.name}' rejected: {fault_message(e)}",
                             details={'spec': spec}) from e

        task_ref = ObjectReference.from_managed_object(task)
        logger.info(f"Submitted {spec.kind.value} clone of {spec.source} to '{spec.name}' ({task_ref})")

        result = self.waiter.wait(task_ref, description=f"clone of {spec.source} to '{spec.name}'",
                                  error_cls=CloneError, cancel=cancel, policy=policy)
        if not isinstance(result, ObjectReference) or result.kind != VIRTUAL_MACHINE:
            raise CloneError(f"Clone task {task_ref} returned no virtual machine",
                             details={'task': task_ref, 'result': result})

        vm = VirtualMachine(self.client, result, self.collector)
        logger.info(f"Cloned '{spec.name}' as {result}")

        if spec.power_state == PowerState.ON:
            try:
                self.power.set_power(vm, PowerState.ON, cancel=cancel)
            except DriverError as e:
                # The clone already exists on the endpoint
                e.details.setdefault('vm', vm.reference())
                raise
        return vm

    def _validate(self, spec: CloneSpec) -> Optional[ObjectReference]:
        """Check references before submitting; returns the snapshot for linked clones"""
        try:
            source = self.collector.fetch(spec.source, VMProperty.NAME, 'snapshot')
        except ObjectGoneError as e:
            raise ClonePreconditionError(f"Clone source {spec.source} does not exist",
                                         details={'ref': spec.source}) from e

        for target in (spec.folder, spec.resource_pool, spec.host, spec.datastore):
            if target is None:
                continue
            try:
                self.collector.fetch(target, VMProperty.NAME)
            except ObjectGoneError as e:
                raise ClonePreconditionError(f"Clone target {target} does not exist",
                                             details={'ref': target}) from e

        if not spec.linked:
            return None

        snapshot = source.current_snapshot
        if snapshot is None:
            raise ClonePreconditionError(
                f"Linked clone requires a snapshot, but '{source.name}' ({spec.source}) has none",
                details={'ref': spec.source})
        return snapshot

    def _build_clone_spec(self, spec: CloneSpec, snapshot: Optional[ObjectReference]):
        relocate_spec = vim.vm.RelocateSpec()
        relocate_spec.pool = self.client.reference(spec.resource_pool)
        if spec.host is not None:
            relocate_spec.host = self.client.reference(spec.host)
        if spec.datastore is not None:
            relocate_spec.datastore = self.client.reference(spec.datastore)
        if spec.linked:
            relocate_spec.diskMoveType = \
                vim.vm.RelocateSpec.DiskMoveOptions.createNewChildDiskBacking

        clone_spec = vim.vm.CloneSpec()
        clone_spec.location = relocate_spec
        clone_spec.powerOn = False
        clone_spec.template = False
        if snapshot is not None:
            clone_spec.snapshot = self.client.reference(snapshot)
        return clone_spec


def verify_clone(vm: VirtualMachine, kind: CloneKind) -> List[DiskChain]:
    """
    Check that every disk of ``vm`` has the chain length a clone of ``kind``
    must have: 2 (base + delta) for linked, 1 for full.
    """
    kind = CloneKind(kind)
    chains = vm.disk_chains()
    expected = expected_chain_length(kind)
    if kind == CloneKind.LINKED and not chains:
        raise VerificationError(f"{vm.reference()} has no disks, so it is not a linked clone")
    for chain in chains:
        if len(chain) != expected:
            raise VerificationError(
                f"Disk {chain.key} of {vm.reference()} has {len(chain)} backing generations, "
                f"expected {expected} for a {kind.value} clone",
                details={'vm': vm.reference(), 'chains': chains})
    return chains
