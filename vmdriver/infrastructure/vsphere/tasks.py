"""
Polling of long-running vSphere tasks and property conditions
"""

import time
import logging
import threading
from typing import Any, Callable, Optional, Type

from ...config import WaitPolicy
from ...exceptions import TaskError, TaskTimeoutError, CancelledError
from .client import VSphereClient
from .properties import PropertyCollector, fault_message
from .references import ObjectReference, detach


logger = logging.getLogger(__name__)

SUCCESS = 'success'
ERROR = 'error'
PENDING_STATES = ('queued', 'running')


def poll_until(check: Callable[[], Any], policy: WaitPolicy, description: str,
               cancel: Optional[threading.Event] = None,
               on_cancel: Optional[Callable[[], None]] = None,
               timeout_error: Type[Exception] = TaskTimeoutError,
               details: Optional[dict] = None) -> Any:
    """
    Call ``check`` until it returns a truthy value and return that value.

    Raises ``timeout_error`` once ``policy.timeout`` seconds have elapsed and
    CancelledError as soon as ``cancel`` is set; ``on_cancel`` runs first.
    """
    deadline = time.monotonic() + policy.timeout
    interval = policy.interval

    while True:
        if cancel is not None and cancel.is_set():
            if on_cancel is not None:
                on_cancel()
            raise CancelledError(f"Stopped waiting for {description}", details=details)

        result = check()
        if result:
            return result

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise timeout_error(
                f"Timed out after {policy.timeout:g}s waiting for {description}",
                details=details)

        pause = min(interval, remaining)
        logger.debug(f"Waiting {pause:.1f}s for {description}")
        if cancel is not None:
            cancel.wait(pause)
        else:
            time.sleep(pause)
        interval = policy.next_interval(interval)


class TaskWaiter:
    """Drives a remote task handle to a terminal state"""

    def __init__(self, vsphere_client: VSphereClient, collector: PropertyCollector,
                 policy: Optional[WaitPolicy] = None):
        self.client = vsphere_client
        self.collector = collector
        self.policy = policy or WaitPolicy()

    def wait(self, task: ObjectReference, description: str = 'task',
             error_cls: Type[TaskError] = TaskError,
             cancel: Optional[threading.Event] = None,
             policy: Optional[WaitPolicy] = None) -> Any:
        """
        Poll ``task`` until it succeeds and return its result.

        A failed task raises ``error_cls`` carrying the remote message. A
        timeout raises TaskTimeoutError with the task reference in
        ``details['task']`` so the caller can resume waiting on it.
        """
        state = {}

        def check():
            info = self.collector.fetch(task, 'info')['info']
            state['info'] = info
            if info.state in PENDING_STATES:
                progress = getattr(info, 'progress', None)
                logger.debug(f"{description}: {info.state}"
                             + (f" {progress}%" if progress is not None else ""))
                return False
            return True

        poll_until(check, policy or self.policy, description, cancel=cancel,
                   on_cancel=lambda: self.cancel(task), details={'task': task})

        info = state['info']
        if info.state == SUCCESS:
            return detach(info.result)
        if info.state == ERROR:
            if info.cancelled:
                raise CancelledError(f"{description} was cancelled: {fault_message(info.error)}",
                                     details={'task': task})
            raise error_cls(f"{description} failed: {fault_message(info.error)}",
                            details={'task': task, 'fault': info.error})
        raise error_cls(f"{description} ended in unexpected state '{info.state}'",
                        details={'task': task})

    def cancel(self, task: ObjectReference) -> bool:
        """Best-effort cancel request; returns whether the endpoint accepted it"""
        try:
            self.client.invoke(self.client.reference(task).CancelTask)
        except Exception as e:
            logger.warning(f"Could not cancel {task}: {e}")
            return False
        logger.info(f"Requested cancellation of {task}")
        return True
