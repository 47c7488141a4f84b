"""
All-or-nothing execution of ledger operations.

Each public mutator runs inside ``atomic_operation``: the shared lock is held for the
whole call, every participating state holder is snapshotted on entry, and any
exception restores all of them before it propagates. Collaborators that cannot be
snapshotted (a remote chain client, say) are still called under the lock but are
expected to be the last side effect of an operation.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterable, Iterator, List, Tuple, TypeVar

from tokenmigration.core.exceptions import CollaboratorCallFailed, MigrationError
from tokenmigration.core.protocols import Snapshottable

logger = logging.getLogger("tokenmigration.core.atomic")

T = TypeVar("T")


def _unique(participants: Iterable[Any]) -> List[Snapshottable]:
    seen = set()
    unique: List[Snapshottable] = []
    for participant in participants:
        if participant is None or id(participant) in seen:
            continue
        if isinstance(participant, Snapshottable):
            seen.add(id(participant))
            unique.append(participant)
    return unique


@contextmanager
def atomic_operation(lock: Any, participants: Iterable[Any], operation: str) -> Iterator[None]:
    """
    Run a block atomically with respect to every other ledger operation.

    Args:
        lock: Shared re-entrant lock serialising all mutators
        participants: State holders to snapshot; non-snapshottable entries are skipped
        operation: Name used in log records
    """
    with lock:
        saved: List[Tuple[Snapshottable, Any]] = [
            (participant, participant.snapshot()) for participant in _unique(participants)
        ]
        try:
            yield
        except BaseException as exc:
            for participant, state in reversed(saved):
                participant.restore(state)
            if isinstance(exc, MigrationError):
                logger.warning(
                    "%s rejected: %s",
                    operation,
                    exc.message,
                    extra={"event": "operation.rejected", "operation": operation,
                           "error_type": type(exc).__name__},
                )
            else:
                logger.error(
                    "%s aborted, state rolled back: %s",
                    operation,
                    exc,
                    extra={"event": "operation.aborted", "operation": operation,
                           "error_type": type(exc).__name__},
                )
            raise


def guarded_call(collaborator: str, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """
    Invoke a collaborator, translating foreign failures into CollaboratorCallFailed.

    MigrationError subclasses raised by in-process collaborators (an insufficient
    balance, an unauthorised deposit) propagate unchanged.
    """
    try:
        return func(*args, **kwargs)
    except MigrationError:
        raise
    except Exception as exc:
        raise CollaboratorCallFailed(
            f"Call to {collaborator} failed: {exc}",
            collaborator=collaborator,
            details={"error_type": type(exc).__name__},
        ) from exc
