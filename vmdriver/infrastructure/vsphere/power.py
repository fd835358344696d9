"""
VM power state transitions
"""

import logging
import threading
from typing import Optional, Union

from pyVmomi import vmodl

from ...config import WaitPolicy
from ...exceptions import PowerRejectedError, PowerTimeoutError, TaskTimeoutError
from .client import VSphereClient
from .properties import PropertyCollector, PowerState, VMProperty, fault_message
from .references import ObjectReference
from .tasks import TaskWaiter, poll_until
from .vm import VirtualMachine


logger = logging.getLogger(__name__)


class PowerStateController:
    """
    Moves VMs between poweredOn and poweredOff and waits until the endpoint
    reports the new state.

    Requesting the current state is a no-op. Concurrent transitions of the
    same VM are not coordinated here.
    """

    def __init__(self, vsphere_client: VSphereClient, collector: PropertyCollector,
                 waiter: Optional[TaskWaiter] = None, policy: Optional[WaitPolicy] = None):
        self.client = vsphere_client
        self.collector = collector
        self.policy = policy or WaitPolicy(timeout=600.0)
        self.waiter = waiter or TaskWaiter(vsphere_client, collector, self.policy)

    def current_state(self, vm: VirtualMachine) -> PowerState:
        return self.collector.fetch(vm.reference(), VMProperty.POWER_STATE).power_state

    def set_power(self, vm: VirtualMachine, desired: Union[PowerState, str],
                  cancel: Optional[threading.Event] = None,
                  policy: Optional[WaitPolicy] = None) -> bool:
        """
        Bring ``vm`` to ``desired`` (PowerState.ON or PowerState.OFF)

        Returns:
            True if a transition was made, False if the VM was already there

        Raises:
            PowerRejectedError: the endpoint refused or failed the transition
            PowerTimeoutError: the state did not settle within the policy timeout
            CancelledError: ``cancel`` was set while waiting
        """
        desired = PowerState(desired)
        if desired not in (PowerState.ON, PowerState.OFF):
            raise ValueError(f"Cannot request power state {desired.value}")
        policy = policy or self.policy

        current = self.current_state(vm)
        if current == desired:
            logger.debug(f"{vm.reference()} is already {desired.value}")
            return False

        mo = self.client.reference(vm.reference())
        method = mo.PowerOnVM_Task if desired == PowerState.ON else mo.PowerOffVM_Task
        action = 'power on' if desired == PowerState.ON else 'power off'
        logger.info(f"Requesting {action} of {vm.reference()} (currently {current.value})")

        try:
            task = self.client.invoke(method)
        except vmodl.MethodFault as e:
            if self.current_state(vm) == desired:
                return False
            raise PowerRejectedError(f"Cannot {action} {vm.reference()}: {fault_message(e)}",
                                     details={'vm': vm.reference()}) from e

        try:
            self.waiter.wait(ObjectReference.from_managed_object(task),
                             description=f"{action} of {vm.reference()}",
                             error_cls=PowerRejectedError, cancel=cancel, policy=policy)
        except TaskTimeoutError as e:
            raise PowerTimeoutError(str(e), details=e.details) from e
        except PowerRejectedError:
            # Someone else may have completed the same transition first
            if self.current_state(vm) == desired:
                return False
            raise

        self._wait_for_state(vm, desired, policy, cancel)
        logger.info(f"{vm.reference()} is {desired.value}")
        return True

    def power_on(self, vm: VirtualMachine, **kwargs) -> bool:
        return self.set_power(vm, PowerState.ON, **kwargs)

    def power_off(self, vm: VirtualMachine, **kwargs) -> bool:
        return self.set_power(vm, PowerState.OFF, **kwargs)

    def shutdown(self, vm: VirtualMachine, cancel: Optional[threading.Event] = None,
                 policy: Optional[WaitPolicy] = None) -> bool:
        """Ask the guest OS to shut down and wait for poweredOff"""
        policy = policy or self.policy
        if self.current_state(vm) == PowerState.OFF:
            return False

        logger.info(f"Requesting guest shutdown of {vm.reference()}")
        mo = self.client.reference(vm.reference())
        try:
            self.client.invoke(mo.ShutdownGuest)
        except vmodl.MethodFault as e:
            raise PowerRejectedError(f"Cannot shut down {vm.reference()}: {fault_message(e)}",
                                     details={'vm': vm.reference()}) from e

        self._wait_for_state(vm, PowerState.OFF, policy, cancel)
        logger.info(f"{vm.reference()} shut down")
        return True

    def _wait_for_state(self, vm: VirtualMachine, desired: PowerState,
                        policy: WaitPolicy, cancel: Optional[threading.Event]) -> None:
        poll_until(lambda: self.current_state(vm) == desired, policy,
                   f"{vm.reference()} to become {desired.value}", cancel=cancel,
                   timeout_error=PowerTimeoutError, details={'vm': vm.reference()})
