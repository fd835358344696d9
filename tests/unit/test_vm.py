"""
Unit tests for the VirtualMachine handle
"""

import threading
import pytest
from vmdriver.config import WaitPolicy
from vmdriver.infrastructure.vsphere.properties import PowerState, VMProperty
from vmdriver.infrastructure.vsphere.references import ObjectReference
from vmdriver.infrastructure.vsphere.vm import VirtualMachine
from vmdriver.exceptions import ObjectGoneError, TaskTimeoutError, CancelledError


class TestVirtualMachine:
    """Test cases for VirtualMachine"""

    def test_identity_round_trip(self, mock_vsphere_client, powered_off_vm):
        rebuilt = VirtualMachine.from_reference(mock_vsphere_client, powered_off_vm.id)

        assert powered_off_vm.id == 'vm-70'
        assert rebuilt == powered_off_vm
        assert hash(rebuilt) == hash(powered_off_vm)
        assert rebuilt.name() == 'vm-off'

    def test_from_full_reference(self, mock_vsphere_client):
        vm = VirtualMachine.from_reference(mock_vsphere_client, 'VirtualMachine:vm-51')
        assert vm.reference() == ObjectReference('VirtualMachine', 'vm-51')

    def test_rejects_other_kinds(self, mock_vsphere_client):
        with pytest.raises(ValueError):
            VirtualMachine(mock_vsphere_client, ObjectReference('HostSystem', 'host-9'))

    def test_queries(self, powered_off_vm):
        assert powered_off_vm.name() == 'vm-off'
        assert powered_off_vm.power_state() is PowerState.OFF
        assert powered_off_vm.ip_address() is None
        assert powered_off_vm.resource_pool() == ObjectReference('ResourcePool', 'resgroup-8')
        assert powered_off_vm.disk_chains() == []

    def test_info_fetches_only_requested_paths(self, powered_off_vm, inventory):
        bag = powered_off_vm.info(VMProperty.NAME, VMProperty.POWER_STATE)

        assert bag.name == 'vm-off'
        assert inventory.fetches[-1] == (powered_off_vm.reference(), ('name', 'runtime.powerState'))

    def test_no_cached_state(self, powered_off_vm, inventory):
        assert powered_off_vm.name() == 'vm-off'
        inventory.set(powered_off_vm.reference(), 'name', 'renamed')
        assert powered_off_vm.name() == 'renamed'

    def test_deleted_vm(self, powered_off_vm, inventory):
        inventory.remove(powered_off_vm.reference())

        with pytest.raises(ObjectGoneError):
            powered_off_vm.name()

    def test_wait_for_ip(self, powered_off_vm, power_controller, fast_policy):
        power_controller.power_on(powered_off_vm)
        assert powered_off_vm.wait_for_ip(policy=fast_policy) == '10.0.0.70'

    def test_wait_for_ip_timeout(self, powered_off_vm, fast_policy):
        with pytest.raises(TaskTimeoutError) as exc_info:
            powered_off_vm.wait_for_ip(policy=fast_policy)

        assert exc_info.value.details == {'vm': powered_off_vm.reference()}

    def test_wait_for_ip_cancel(self, powered_off_vm):
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(CancelledError):
            powered_off_vm.wait_for_ip(policy=WaitPolicy(timeout=30), cancel=cancel)
