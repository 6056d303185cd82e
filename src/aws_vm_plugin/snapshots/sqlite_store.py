"""SQLite persistence for snapshot tasks."""

from __future__ import annotations

import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Mapping, Sequence

from aws_vm_plugin.domain.models import SnapshotOperation, SnapshotTask
from aws_vm_plugin.snapshots.store import (
    StepUpdate,
    TaskAlreadyRunningError,
    TaskNotFoundError,
    finish,
)
from aws_vm_plugin.utils.time import as_utc, utc_now

_SqlValue = str | bytes | int | float | None
_SqlParams = Sequence[_SqlValue] | Mapping[str, _SqlValue]

_COLUMNS = (
    "subscription",
    "operation",
    "author",
    "start",
    "end",
    "stop",
    "snapshot_id",
    "phase",
    "done",
    "workload",
    "failed",
    "finished_remote",
    "status_text",
)


def _to_text(value: datetime | None) -> str | None:
    return as_utc(value).isoformat() if value is not None else None


def _from_text(value: str | None) -> datetime | None:
    return as_utc(datetime.fromisoformat(value)) if value is not None else None


class SqliteTaskStore:
    """Keeps the last snapshot task of each subscription in SQLite."""

    def __init__(self, path: str, wal: bool = True) -> None:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.RLock()
        self._closed = False
        if wal:
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()

    def _init_schema(self) -> None:
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS snapshot_task (
                subscription INTEGER PRIMARY KEY,
                operation TEXT NOT NULL,
                author TEXT NOT NULL,
                start TEXT NOT NULL,
                "end" TEXT,
                stop INTEGER NOT NULL DEFAULT 0,
                snapshot_id TEXT,
                phase TEXT,
                done INTEGER NOT NULL DEFAULT 0,
                workload INTEGER NOT NULL DEFAULT 0,
                failed INTEGER NOT NULL DEFAULT 0,
                finished_remote INTEGER NOT NULL DEFAULT 0,
                status_text TEXT
            );
            """
        )
        self._conn.commit()

    def execute(self, query: str, params: _SqlParams) -> None:
        with self._lock:
            self._conn.execute(query, params)
            self._conn.commit()

    def fetch_one(self, query: str, params: _SqlParams) -> sqlite3.Row | None:
        with self._lock:
            cur = self._conn.execute(query, params)
            return cur.fetchone()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._conn.close()
            self._closed = True

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
            current = self.get_task(subscription)
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
            self.save(task)
            return task

    def get_task(self, subscription: int) -> SnapshotTask | None:
        row = self.fetch_one(
            "SELECT * FROM snapshot_task WHERE subscription = ?", (subscription,)
        )
        return self._to_task(row) if row is not None else None

    def save(self, task: SnapshotTask) -> None:
        columns = ", ".join(f'"{name}"' for name in _COLUMNS)
        placeholders = ", ".join("?" for _ in _COLUMNS)
        self.execute(
            f"INSERT OR REPLACE INTO snapshot_task ({columns}) VALUES ({placeholders})",
            (
                task.subscription,
                task.operation.value,
                task.author,
                _to_text(task.start),
                _to_text(task.end),
                int(task.stop),
                task.snapshot_id,
                task.phase,
                task.done,
                task.workload,
                int(task.failed),
                int(task.finished_remote),
                task.status_text,
            ),
        )

    def next_step(self, subscription: int, update: StepUpdate) -> SnapshotTask:
        with self._lock:
            task = update.apply(self._require(subscription))
            self.save(task)
            return task

    def end_task(self, subscription: int, failed: bool, update: StepUpdate) -> SnapshotTask:
        with self._lock:
            task = finish(self._require(subscription), failed, update, utc_now())
            self.save(task)
            return task

    def _require(self, subscription: int) -> SnapshotTask:
        task = self.get_task(subscription)
        if task is None:
            raise TaskNotFoundError(subscription)
        return task

    @staticmethod
    def _to_task(row: sqlite3.Row) -> SnapshotTask:
        return SnapshotTask(
            subscription=row["subscription"],
            operation=SnapshotOperation(row["operation"]),
            author=row["author"],
            start=_from_text(row["start"]),  # type: ignore[arg-type]
            end=_from_text(row["end"]),
            stop=bool(row["stop"]),
            snapshot_id=row["snapshot_id"],
            phase=row["phase"],
            done=row["done"],
            workload=row["workload"],
            failed=bool(row["failed"]),
            finished_remote=bool(row["finished_remote"]),
            status_text=row["status_text"],
        )
