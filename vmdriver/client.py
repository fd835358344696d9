"""
Driver: one vSphere session and the services bound to it
"""

import logging
import threading
from typing import Optional, Union

from .config import ConnectConfig, WaitPolicy, VirtualMachineConfig
from .exceptions import VerificationError
from .infrastructure.vsphere.client import VSphereClient
from .infrastructure.vsphere.cloner import VirtualMachineCloner, CloneSpec, CloneKind, verify_clone
from .infrastructure.vsphere.power import PowerStateController
from .infrastructure.vsphere.properties import PropertyCollector, PowerState
from .infrastructure.vsphere.references import (
    ObjectReference, VIRTUAL_MACHINE, HOST_SYSTEM, DATASTORE, RESOURCE_POOL,
)
from .infrastructure.vsphere.resolver import ObjectReferenceResolver, ResourcePool
from .infrastructure.vsphere.tasks import TaskWaiter
from .infrastructure.vsphere.vm import VirtualMachine


logger = logging.getLogger(__name__)


class Driver:
    """Main entry point: resolve placements, clone, power and query VMs"""

    def __init__(self, config: ConnectConfig, policy: Optional[WaitPolicy] = None,
                 power_policy: Optional[WaitPolicy] = None,
                 vsphere_client: Optional[VSphereClient] = None):
        self.config = config
        self.policy = policy or WaitPolicy()
        self.client = vsphere_client or VSphereClient(config)
        self.collector = PropertyCollector(self.client)
        self.resolver = ObjectReferenceResolver(self.client, self.collector)
        self.waiter = TaskWaiter(self.client, self.collector, self.policy)
        self.power = PowerStateController(self.client, self.collector,
                                          policy=power_policy or WaitPolicy(timeout=600.0))
        self.cloner = VirtualMachineCloner(self.client, self.collector, self.waiter,
                                           self.power, self.policy)
        self._datacenter = None

    @classmethod
    def connect(cls, config: ConnectConfig, **kwargs) -> 'Driver':
        """Create a driver and open its session; fails fast on bad credentials"""
        driver = cls(config, **kwargs)
        driver.client.connect()
        return driver

    def close(self) -> None:
        self.client.disconnect()

    def __enter__(self) -> 'Driver':
        if not self.client.is_connected():
            self.client.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # Handles

    def new_vm(self, ref: Union[ObjectReference, str]) -> VirtualMachine:
        """Handle for a known VM, e.g. from a persisted id like ``vm-42``"""
        return VirtualMachine.from_reference(self.client, ref, self.collector)

    def new_resource_pool(self, ref: Union[ObjectReference, str]) -> ResourcePool:
        if isinstance(ref, str):
            ref = ObjectReference.parse(ref, default_kind=RESOURCE_POOL)
        return ResourcePool(self.resolver, ref)

    # Lookups

    @property
    def datacenter(self) -> ObjectReference:
        if self._datacenter is None:
            self._datacenter = self.resolver.find_datacenter(self.config.datacenter)
        return self._datacenter

    def find_datacenter(self, name: Optional[str] = None) -> ObjectReference:
        return self.resolver.find_datacenter(name)

    def find_vm(self, name: str) -> VirtualMachine:
        return self.new_vm(self.resolver.find_by_name(VIRTUAL_MACHINE, name, self.datacenter))

    find_template = find_vm

    def find_host(self, name: str) -> ObjectReference:
        return self.resolver.find_by_name(HOST_SYSTEM, name, self.datacenter)

    def find_datastore(self, name: str) -> ObjectReference:
        return self.resolver.find_by_name(DATASTORE, name, self.datacenter)

    def find_resource_pool(self, path: str, host: Optional[ObjectReference] = None) -> ResourcePool:
        ref = self.resolver.resolve_resource_pool(path, host=host, datacenter=self.datacenter)
        return ResourcePool(self.resolver, ref)

    def find_folder(self, path: str) -> ObjectReference:
        return self.resolver.resolve_folder(path, self.datacenter)

    # Lifecycle

    def clone(self, spec: CloneSpec, cancel: Optional[threading.Event] = None) -> VirtualMachine:
        return self.cloner.clone(spec, cancel=cancel)

    def set_power(self, vm: VirtualMachine, state: Union[PowerState, str],
                  cancel: Optional[threading.Event] = None) -> bool:
        return self.power.set_power(vm, state, cancel=cancel)

    def provision(self, vm_config: VirtualMachineConfig,
                  cancel: Optional[threading.Event] = None) -> VirtualMachine:
        """Resolve the names in ``vm_config``, clone the image and power as requested"""
        source = self.find_template(vm_config.image)
        host = self.find_host(vm_config.host) if vm_config.host else None
        pool = self.find_resource_pool(vm_config.resource_pool or '', host=host)
        folder = self.find_folder(vm_config.folder or '')
        datastore = self.find_datastore(vm_config.datastore) if vm_config.datastore else None

        spec = CloneSpec(
            source=source.reference(),
            name=vm_config.name,
            folder=folder,
            resource_pool=pool.reference(),
            host=host,
            datastore=datastore,
            kind=CloneKind.LINKED if vm_config.linked_clone else CloneKind.FULL,
            power_state=PowerState.ON if vm_config.power_on else PowerState.OFF,
        )
        logger.info(f"Provisioning '{vm_config.name}' from '{vm_config.image}'")
        return self.clone(spec, cancel=cancel)

    # Verification

    def verify_clone(self, vm: VirtualMachine, kind: Union[CloneKind, str]):
        return verify_clone(vm, kind)

    def verify_pool_path(self, vm: VirtualMachine, expected: str) -> str:
        """Check that ``vm`` sits in the resource pool at path ``expected``"""
        pool = vm.resource_pool()
        if pool is None:
            raise VerificationError(f"{vm.reference()} reports no resource pool")
        path = self.new_resource_pool(pool).path()
        if path != expected.strip('/'):
            raise VerificationError(f"Wrong resource pool for {vm.reference()}. "
                                    f"expected: {expected}, got: {path}",
                                    details={'vm': vm.reference(), 'path': path})
        return path

    def verify_ip_address(self, vm: VirtualMachine, expected: str) -> str:
        """Check that the guest reports ``expected`` as its IP address"""
        address = vm.ip_address()
        if address != expected:
            raise VerificationError(f"Invalid IP address for {vm.reference()}. "
                                    f"expected: {expected}, got: {address}",
                                    details={'vm': vm.reference(), 'ip_address': address})
        return address
