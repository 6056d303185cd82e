"""Listing of the AMIs of a subscription, reconciled with its snapshot task.

``DescribeImages`` filtered by tag does not list a just-created AMI for a
while, although ``DescribeImages`` by ``ImageId`` already finds it. The
catalog hides that delay: the AMI implied by the current task is added to
the listing until the filtered query returns it.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from aws_vm_plugin.domain.decode import XmlDecodeError, decode_artifacts
from aws_vm_plugin.domain.models import (
    TAG_SUBSCRIPTION,
    Artifact,
    SnapshotOperation,
    SnapshotTask,
)
from aws_vm_plugin.gateway.ec2 import Ec2Client
from aws_vm_plugin.gateway.query import ec2_query
from aws_vm_plugin.identity import IdentityResolver
from aws_vm_plugin.snapshots.store import TaskStore
from aws_vm_plugin.utils.time import utc_now

logger = logging.getLogger(__name__)

PHASE_CHECKING_AVAILABILITY = "checking-availability"

# Steps of a snapshot lifecycle
WORKLOAD = 3

STATUS_NOT_CREATED = "not-created"
STATUS_NOT_FOUND = "not-found"
STATUS_NOT_FINISHED_REMOTE = "not-finished-remote"


class SnapshotQueryError(Exception):
    def __init__(self, message: str, code: str) -> None:
        super().__init__(message)
        self.code = code


def matches(artifact: Artifact, criteria: str) -> bool:
    """Case-insensitive match of the AMI name, AMI id or one of its volume snapshot ids."""
    needle = criteria.lower()
    return (
        needle in (artifact.name or "").lower()
        or (artifact.id is not None and needle in artifact.id.lower())
        or any(v.id is not None and needle in v.id.lower() for v in artifact.volumes)
    )


def set_finished_remote(task: SnapshotTask) -> None:
    """Last step of a create: its AMI is listed by the tag filtered query."""
    task.finished_remote = True
    task.workload = max(task.workload, WORKLOAD)
    task.done = task.workload
    task.phase = PHASE_CHECKING_AVAILABILITY


class SnapshotCatalog:
    def __init__(
        self,
        ec2: Ec2Client,
        identity: IdentityResolver,
        store: TaskStore | None = None,
    ) -> None:
        self._ec2 = ec2
        self._identity = identity
        self._store = store

    def find_all(self, subscription: int, filters: list[tuple[str, object]]) -> list[Artifact]:
        """AMIs owned by the account of the subscription, narrowed by ``filters``.

        A failed call lists nothing; an unreadable listing raises
        :class:`SnapshotQueryError`.
        """
        query = ec2_query("DescribeImages", [("Owner.1", "self"), *filters])
        response = self._ec2.process_for(subscription, lambda _: query)
        try:
            return decode_artifacts(response, self._identity.resolve)
        except XmlDecodeError as exc:
            logger.error(
                "DescribeImages failed for subscription %s and filter %s: %s",
                subscription,
                filters,
                exc,
            )
            raise SnapshotQueryError(str(exc), "DescribeImages-failed") from exc

    def find_all_by_subscription(self, subscription: int) -> list[Artifact]:
        return self.find_all(
            subscription,
            [("Filter.1.Name", f"tag:{TAG_SUBSCRIPTION}"), ("Filter.1.Value", subscription)],
        )

    def find_by_id(self, subscription: int, ami_id: str) -> Artifact | None:
        """Direct lookup, not subject to the listing delay and not filtered by subscription."""
        found = self.find_all(subscription, [("ImageId.1", ami_id)])
        return found[0] if found else None

    def find_all_by_name_or_id(self, subscription: int, criteria: str) -> list[Artifact]:
        task = self._store.get_task(subscription) if self._store is not None else None
        return self.find_all_matching(subscription, criteria, task)

    def find_all_matching(
        self,
        subscription: int,
        criteria: str,
        task: SnapshotTask | None,
    ) -> list[Artifact]:
        """Matching AMIs by descending creation date, headed by the task's unlisted AMI."""
        listed = self.find_all_by_subscription(subscription)
        snapshots = sorted(
            (artifact for artifact in listed if matches(artifact, criteria)),
            key=lambda artifact: artifact.date,
            reverse=True,
        )
        if task is None:
            return snapshots

        before = replace(task)
        unlisted = self._find_unlisted(subscription, listed, task)
        if unlisted is not None and matches(unlisted, criteria):
            snapshots.insert(0, unlisted)

        for artifact in snapshots:
            if artifact.id == task.snapshot_id:
                artifact.operation = task.operation

        if task != before:
            self._save(task)
        return snapshots

    def complete_status(self, task: SnapshotTask) -> None:
        """Check remotely a create task finished locally.

        The task is finished remotely once its AMI is listed by the tag
        filtered query; it fails when the AMI cannot be found at all.
        """
        if (
            task.operation is not SnapshotOperation.CREATE
            or task.snapshot_id is None
            or not task.finished_locally
            or task.finished_remote
        ):
            return

        ami_id = task.snapshot_id
        if self.find_by_id(task.subscription, ami_id) is None:
            # Deleted, or never correctly created
            task.failed = True
            task.end = utc_now()
            task.finished_remote = True
            task.status_text = STATUS_NOT_FOUND
        elif any(a.id == ami_id for a in self.find_all_by_subscription(task.subscription)):
            set_finished_remote(task)
        else:
            task.status_text = STATUS_NOT_FINISHED_REMOTE
        self._save(task)

    def _find_unlisted(
        self,
        subscription: int,
        listed: list[Artifact],
        task: SnapshotTask,
    ) -> Artifact | None:
        if task.failed:
            task.finished_remote = True
            artifact = self._from_task(task, None)
            artifact.pending = False
            return artifact

        if task.snapshot_id is None:
            return self._from_task(task, STATUS_NOT_CREATED)

        if task.finished_remote:
            return None

        if any(artifact.id == task.snapshot_id for artifact in listed):
            # Listed since the last check. A delete still has to unregister it.
            if task.operation is SnapshotOperation.CREATE:
                set_finished_remote(task)
            return None

        artifact = self.find_by_id(subscription, task.snapshot_id)
        if artifact is None:
            return self._from_task(task, STATUS_NOT_FOUND)
        artifact.author = self._identity.resolve(task.author)
        artifact.set_pending(STATUS_NOT_FINISHED_REMOTE)
        return artifact

    def _from_task(self, task: SnapshotTask, status_text: str | None) -> Artifact:
        artifact = Artifact(
            id=task.snapshot_id,
            author=self._identity.resolve(task.author),
            date=task.start,
            stop_requested=task.stop,
        )
        artifact.set_pending(status_text if status_text is not None else task.status_text)
        return artifact

    def _save(self, task: SnapshotTask) -> None:
        if self._store is not None:
            self._store.save(task)
