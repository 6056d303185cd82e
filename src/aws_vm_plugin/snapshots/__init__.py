"""AMI snapshot lifecycle and catalog."""

from aws_vm_plugin.snapshots.catalog import SnapshotCatalog, SnapshotQueryError
from aws_vm_plugin.snapshots.orchestrator import SnapshotOrchestrator
from aws_vm_plugin.snapshots.sqlite_store import SqliteTaskStore
from aws_vm_plugin.snapshots.store import (
    CLEAR,
    InMemoryTaskStore,
    StepUpdate,
    TaskAlreadyRunningError,
    TaskNotFoundError,
    TaskStore,
)

__all__ = [
    "CLEAR",
    "InMemoryTaskStore",
    "SnapshotCatalog",
    "SnapshotOrchestrator",
    "SnapshotQueryError",
    "SqliteTaskStore",
    "StepUpdate",
    "TaskAlreadyRunningError",
    "TaskNotFoundError",
    "TaskStore",
]
