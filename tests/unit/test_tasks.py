"""
Unit tests for task polling
"""

import threading
import pytest
from unittest.mock import Mock, patch
from vmdriver.config import WaitPolicy
from vmdriver.infrastructure.vsphere.references import ObjectReference
from vmdriver.infrastructure.vsphere.tasks import poll_until
from vmdriver.exceptions import TaskError, TaskTimeoutError, CancelledError, CloneError
from tests.mocks.vsphere import MockTaskInfo


class TestPollUntil:
    """Test cases for poll_until"""

    def test_returns_first_truthy_value(self, fast_policy):
        check = Mock(side_effect=[None, False, '10.0.0.5'])

        assert poll_until(check, fast_policy, 'ip') == '10.0.0.5'
        assert check.call_count == 3

    def test_timeout(self, fast_policy):
        with pytest.raises(TaskTimeoutError, match="waiting for ip") as exc_info:
            poll_until(lambda: None, fast_policy, 'ip', details={'vm': 'vm-1'})

        assert exc_info.value.details == {'vm': 'vm-1'}
        assert exc_info.value.retryable is True

    def test_custom_timeout_error(self, fast_policy):
        class Slow(Exception):
            def __init__(self, message, details=None):
                super().__init__(message)

        with pytest.raises(Slow):
            poll_until(lambda: None, fast_policy, 'state', timeout_error=Slow)

    def test_cancel_checked_before_polling(self, fast_policy):
        cancel = threading.Event()
        cancel.set()
        check = Mock(return_value=True)
        on_cancel = Mock()

        with pytest.raises(CancelledError):
            poll_until(check, fast_policy, 'task', cancel=cancel, on_cancel=on_cancel)

        check.assert_not_called()
        on_cancel.assert_called_once()

    def test_cancel_while_waiting(self):
        policy = WaitPolicy(timeout=30, interval=0.01, backoff=1.0, max_interval=0.01)
        cancel = threading.Event()
        calls = []

        def check():
            calls.append(1)
            if len(calls) == 3:
                cancel.set()
            return False

        with pytest.raises(CancelledError):
            poll_until(check, policy, 'task', cancel=cancel)

        assert len(calls) == 3

    @patch('vmdriver.infrastructure.vsphere.tasks.time.sleep')
    def test_backoff(self, mock_sleep):
        policy = WaitPolicy(timeout=60, interval=1.0, backoff=2.0, max_interval=3.0)
        check = Mock(side_effect=[False, False, False, True])

        poll_until(check, policy, 'task')

        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0, 3.0]


class TestTaskWaiter:
    """Test cases for TaskWaiter"""

    def test_success_returns_detached_result(self, waiter, inventory):
        result = ObjectReference('VirtualMachine', 'vm-77').to_managed_object()
        task = inventory.new_task(MockTaskInfo(state='success', result=result))

        assert waiter.wait(task) == ObjectReference('VirtualMachine', 'vm-77')

    def test_running_then_success(self, waiter, inventory):
        info = MockTaskInfo(state='queued')
        task = inventory.new_task(info)
        states = iter(['running', 'success'])
        respond = inventory.retrieve_properties

        def advance(spec_set, options=None):
            response = respond(spec_set, options)
            info.state = next(states, 'success')
            return response

        waiter.collector.client.content.propertyCollector.RetrievePropertiesEx.side_effect = advance

        assert waiter.wait(task) is None

    def test_failure_carries_remote_message(self, waiter, inventory):
        task = inventory.new_task(MockTaskInfo(state='error', error="Insufficient disk space"))

        with pytest.raises(CloneError, match="Insufficient disk space") as exc_info:
            waiter.wait(task, description='clone', error_cls=CloneError)

        assert exc_info.value.details['task'] == task
        assert exc_info.value.retryable is False

    def test_failure_default_error(self, waiter, inventory):
        task = inventory.new_task(MockTaskInfo(state='error', error="boom"))

        with pytest.raises(TaskError, match="boom"):
            waiter.wait(task)

    def test_cancelled_remotely(self, waiter, inventory):
        task = inventory.new_task(MockTaskInfo(state='error', error="The task was canceled by a user.",
                                               cancelled=True))

        with pytest.raises(CancelledError, match="canceled by a user"):
            waiter.wait(task)

    def test_timeout_keeps_task_reference(self, waiter, inventory, mock_vsphere_client):
        task = inventory.new_task(MockTaskInfo(state='running'))

        with pytest.raises(TaskTimeoutError) as exc_info:
            waiter.wait(task)

        assert exc_info.value.details['task'] == task
        inventory.managed_object(task).CancelTask.assert_not_called()

    def test_cancel_event_cancels_remote_task(self, waiter, inventory):
        task = inventory.new_task(MockTaskInfo(state='running'))
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(CancelledError):
            waiter.wait(task, cancel=cancel)

        inventory.managed_object(task).CancelTask.assert_called_once()

    def test_cancel_failure_is_reported(self, waiter, inventory):
        task = inventory.new_task(MockTaskInfo(state='success'))
        inventory.managed_object(task).CancelTask.side_effect = Exception("already finished")

        assert waiter.cancel(task) is False

    def test_unexpected_state(self, waiter, inventory):
        task = inventory.new_task(MockTaskInfo(state='paused'))

        with pytest.raises(TaskError, match="unexpected state"):
            waiter.wait(task)
