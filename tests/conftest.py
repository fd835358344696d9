"""
Shared test fixtures and configuration for vmdriver tests
"""

import pytest
from vmdriver.client import Driver
from vmdriver.config import ConnectConfig, WaitPolicy
from vmdriver.infrastructure.vsphere.cloner import VirtualMachineCloner
from vmdriver.infrastructure.vsphere.power import PowerStateController
from vmdriver.infrastructure.vsphere.properties import PropertyCollector
from vmdriver.infrastructure.vsphere.references import ObjectReference
from vmdriver.infrastructure.vsphere.resolver import ObjectReferenceResolver
from vmdriver.infrastructure.vsphere.tasks import TaskWaiter
from vmdriver.infrastructure.vsphere.vm import VirtualMachine
from tests.mocks.vsphere import (
    MockVSphereClient, build_standard_inventory,
)


@pytest.fixture
def connect_config():
    """Connection parameters for a lab vCenter"""
    return ConnectConfig(
        server="vcenter.example.com",
        username="admin@vsphere.local",
        password="password",
        insecure=True,
    )


@pytest.fixture
def fast_policy():
    """Wait policy that keeps poll loops short"""
    return WaitPolicy(timeout=0.2, interval=0.01, backoff=1.0, max_interval=0.01)


@pytest.fixture
def inventory():
    """Standard in-memory inventory"""
    return build_standard_inventory()


@pytest.fixture
def mock_vsphere_client(inventory):
    """VSphereClient backed by the inventory"""
    return MockVSphereClient(inventory)


@pytest.fixture
def collector(mock_vsphere_client):
    """Property collector answering from the inventory"""
    return PropertyCollector(mock_vsphere_client)


@pytest.fixture
def resolver(mock_vsphere_client, collector):
    return ObjectReferenceResolver(mock_vsphere_client, collector)


@pytest.fixture
def waiter(mock_vsphere_client, collector, fast_policy):
    return TaskWaiter(mock_vsphere_client, collector, fast_policy)


@pytest.fixture
def power_controller(mock_vsphere_client, collector, waiter, fast_policy):
    return PowerStateController(mock_vsphere_client, collector, waiter, fast_policy)


@pytest.fixture
def cloner(mock_vsphere_client, collector, waiter, power_controller, fast_policy):
    return VirtualMachineCloner(mock_vsphere_client, collector, waiter,
                                power_controller, fast_policy)


@pytest.fixture
def driver(connect_config, mock_vsphere_client, fast_policy):
    """Driver wired to the in-memory inventory"""
    return Driver(connect_config, policy=fast_policy, power_policy=fast_policy,
                  vsphere_client=mock_vsphere_client)

@pytest.fixture
def basic_template():
    return ObjectReference('VirtualMachine', 'vm-51')


@pytest.fixture
def empty_template():
    return ObjectReference('VirtualMachine', 'vm-50')


@pytest.fixture
def powered_off_vm(inventory, mock_vsphere_client, collector):
    """A plain powered-off VM in the root VM folder"""
    ref = inventory.add('VirtualMachine', 'vm-70', name='vm-off',
                        parent=ObjectReference('Folder', 'group-v3'),
                        runtime__powerState='poweredOff',
                        resourcePool=ObjectReference('ResourcePool', 'resgroup-8'))
    inventory.guest_addresses['vm-off'] = '10.0.0.70'
    return VirtualMachine(mock_vsphere_client, ref, collector)


# Test data fixtures
@pytest.fixture
def vsphere_test_data():
    """Test data for vSphere operations"""
    return {
        'host': 'vcenter.example.com',
        'username': 'admin@vsphere.local',
        'password': 'password',
        'port': 443,
        'datacenter': 'dc1',
        'esxi_host': 'esxi-1.vsphere55.test',
        'resource_pool': 'pool1/pool2',
        'expected_ip': '10.0.0.15',
    }
