"""
Example usage of vmdriver: provision a linked clone and check the result
"""

import os
import logging

from vmdriver import Driver, ConnectConfig, VirtualMachineConfig, WaitPolicy
from vmdriver.infrastructure.vsphere.cloner import CloneKind

logging.basicConfig(level=logging.INFO)

# Use environment variables for security: export VSPHERE_PASSWORD=your_password
config = ConnectConfig(
    server="vcenter.example.com",
    username="administrator@vsphere.local",
    password=os.getenv("VSPHERE_PASSWORD", "your_password_here"),
    insecure=True  # For testing only
)

vm_config = VirtualMachineConfig(
    name="vm-1",
    image="basic",
    host="esxi-1.vsphere55.test",
    resource_pool="pool1/pool2",
    linked_clone=True,
)

with Driver(config) as driver:
    vm = driver.provision(vm_config)
    print(f"Created {vm.name()} with id {vm.id}")

    # The id is all that needs to be stored to find the VM again
    same_vm = driver.new_vm(vm.id)

    driver.verify_clone(same_vm, CloneKind.LINKED)
    print(f"Resource pool: {driver.verify_pool_path(same_vm, vm_config.resource_pool)}")

    address = same_vm.wait_for_ip(policy=WaitPolicy(timeout=600))
    print(f"IP Address: {address}")
