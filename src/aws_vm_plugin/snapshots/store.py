"""Task-store contract and its in-memory implementation.

The orchestrator never mutates a task through callbacks: every step is a
``StepUpdate`` value handed to the store, which applies and persists it.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Final, Protocol

from aws_vm_plugin.domain.models import SnapshotOperation, SnapshotTask
from aws_vm_plugin.utils.time import utc_now


class TaskStoreError(Exception):
    def __init__(self, message: str, code: str) -> None:
        super().__init__(message)
        self.code = code


class TaskNotFoundError(TaskStoreError, LookupError):
    def __init__(self, subscription: int) -> None:
        super().__init__(f"No snapshot task for subscription {subscription}", "task-not-found")


class TaskAlreadyRunningError(TaskStoreError):
    def __init__(self, subscription: int) -> None:
        super().__init__(
            f"A snapshot task is already running for subscription {subscription}",
            "concurrent-task",
        )


class _Clear:
    def __repr__(self) -> str:
        return "CLEAR"


CLEAR: Final = _Clear()


@dataclass(frozen=True)
class StepUpdate:
    """Fields to set on a task; ``None`` leaves a field untouched."""

    phase: str | None = None
    done: int | None = None
    workload: int | None = None
    snapshot_id: str | None = None
    status_text: str | _Clear | None = None
    finished_remote: bool | None = None

    def apply(self, task: SnapshotTask) -> SnapshotTask:
        """Set the fields on ``task``, unless ``done`` would exceed ``workload``."""
        done = task.done if self.done is None else self.done
        workload = task.workload if self.workload is None else self.workload
        if done > workload:
            raise ValueError(f"Task step {done} exceeds its workload {workload}")

        task.done = done
        task.workload = workload
        if self.phase is not None:
            task.phase = self.phase
        if self.snapshot_id is not None:
            task.snapshot_id = self.snapshot_id
        if self.status_text is CLEAR:
            task.status_text = None
        elif self.status_text is not None:
            task.status_text = self.status_text  # type: ignore[assignment]
        if self.finished_remote is not None:
            task.finished_remote = self.finished_remote
        return task


def finish(task: SnapshotTask, failed: bool, update: StepUpdate, now: datetime) -> SnapshotTask:
    update.apply(task)
    task.failed = failed
    task.end = now
    return task


class TaskStore(Protocol):
    def get_task(self, subscription: int) -> SnapshotTask | None: ...

    def next_step(self, subscription: int, update: StepUpdate) -> SnapshotTask: ...

    def end_task(self, subscription: int, failed: bool, update: StepUpdate) -> SnapshotTask: ...

    def save(self, task: SnapshotTask) -> None: ...


class InMemoryTaskStore:
    """Keeps the last task of each subscription in memory."""

    def __init__(self) -> None:
        self._tasks: dict[int, SnapshotTask] = {}
        self._lock = threading.Lock()

    def start_task(
        self,
        subscription: int,
        operation: SnapshotOperation,
        author: str,
        *,
        stop: bool = False,
        snapshot_id: str | None = None,
    ) -> SnapshotTask:
        with self._lock:
            current = self._tasks.get(subscription)
            if current is not None and not current.finished_locally:
                raise TaskAlreadyRunningError(subscription)
            task = SnapshotTask(
                subscription=subscription,
                operation=operation,
                author=author,
                start=utc_now(),
                stop=stop,
                snapshot_id=snapshot_id,
            )
            self._tasks[subscription] = task
            return task

    def get_task(self, subscription: int) -> SnapshotTask | None:
        with self._lock:
            return self._tasks.get(subscription)

    def save(self, task: SnapshotTask) -> None:
        with self._lock:
            self._tasks[task.subscription] = task

    def next_step(self, subscription: int, update: StepUpdate) -> SnapshotTask:
        with self._lock:
            return update.apply(self._require(subscription))

    def end_task(self, subscription: int, failed: bool, update: StepUpdate) -> SnapshotTask:
        with self._lock:
            return finish(self._require(subscription), failed, update, utc_now())

    def _require(self, subscription: int) -> SnapshotTask:
        task = self._tasks.get(subscription)
        if task is None:
            raise TaskNotFoundError(subscription)
        return task
