import threading

import pytest

from tokenmigration.core.atomic import atomic_operation, guarded_call
from tokenmigration.core.exceptions import CollaboratorCallFailed, InsufficientBalance


class Counter:
    def __init__(self):
        self.value = 0
        self.restores = 0

    def snapshot(self):
        return self.value

    def restore(self, state):
        self.restores += 1
        self.value = state


def test_state_is_kept_on_success():
    counter = Counter()
    with atomic_operation(threading.RLock(), [counter], "bump"):
        counter.value += 5
    assert counter.value == 5
    assert counter.restores == 0


def test_every_participant_is_restored_once_on_failure():
    first, second = Counter(), Counter()
    with pytest.raises(KeyError):
        with atomic_operation(threading.RLock(), [first, second, first, None, object()], "bump"):
            first.value = 1
            second.value = 2
            raise KeyError("boom")
    assert (first.value, second.value) == (0, 0)
    assert (first.restores, second.restores) == (1, 1)


def test_nested_operations_share_a_reentrant_lock():
    lock = threading.RLock()
    counter = Counter()
    with atomic_operation(lock, [counter], "outer"):
        with atomic_operation(lock, [counter], "inner"):
            counter.value = 3
    assert counter.value == 3


def test_guarded_call_wraps_foreign_errors():
    def explode():
        raise TimeoutError("rpc timeout")

    with pytest.raises(CollaboratorCallFailed) as excinfo:
        guarded_call("staking provider 0", explode)
    assert excinfo.value.collaborator == "staking provider 0"
    assert isinstance(excinfo.value.__cause__, TimeoutError)


def test_guarded_call_lets_ledger_errors_through():
    def short():
        raise InsufficientBalance("empty")

    with pytest.raises(InsufficientBalance):
        guarded_call("source token", short)
    assert guarded_call("adder", lambda a, b=0: a + b, 2, b=3) == 5
