"""Create and delete lifecycles of AMI snapshots.

Create: ``creating-ami`` -> ``tagging-ami`` -> ``checking-availability``.
Delete: ``searching-ami`` -> ``unregistering-ami`` -> ``deleting-snapshots``.

Each failed step ends the task as failed and finished remotely with a
``service:vm:aws:*`` status key. A failed call and a ``false``
acknowledgement are the same failure.
"""

from __future__ import annotations

import logging

from aws_vm_plugin.domain.decode import decode_image_id, decode_return_flag
from aws_vm_plugin.domain.models import TAG_AUDIT, TAG_SUBSCRIPTION, SnapshotTask
from aws_vm_plugin.gateway.ec2 import KEY, PARAMETER_INSTANCE_ID, Ec2Client
from aws_vm_plugin.gateway.query import ec2_query, indexed
from aws_vm_plugin.snapshots.catalog import (
    PHASE_CHECKING_AVAILABILITY,
    WORKLOAD,
    SnapshotCatalog,
    SnapshotQueryError,
)
from aws_vm_plugin.snapshots.store import CLEAR, StepUpdate, TaskStore

logger = logging.getLogger(__name__)

AMI_NAME_PREFIX = "ligoj-snapshot/"
AMI_DESCRIPTION = "Snapshot created from Ligoj"

STATUS_CREATE_FAILED = KEY + ":ami-create-failed"
STATUS_TAG_FAILED = KEY + ":ami-tag-failed"
STATUS_NOT_FOUND = KEY + ":ami-not-found"
STATUS_UNREGISTERING_FAILED = KEY + ":ami-unregistering-failed"
STATUS_DELETING_SNAPSHOTS_FAILED = KEY + ":ami-deleting-snapshots-failed"


def ami_name(task: SnapshotTask) -> str:
    return f"{AMI_NAME_PREFIX}{task.subscription}/{task.start:%Y-%m-%d_%H-%M-%S}"


class SnapshotOrchestrator:
    def __init__(self, ec2: Ec2Client, catalog: SnapshotCatalog, store: TaskStore) -> None:
        self._ec2 = ec2
        self._catalog = catalog
        self._store = store

    def create(self, task: SnapshotTask) -> SnapshotTask:
        """Create the AMI of the subscription instance, then tag it."""
        subscription = task.subscription
        parameters = self._ec2.get_parameters(subscription)
        self._store.next_step(subscription, StepUpdate(phase="creating-ami", workload=WORKLOAD))

        response = self._ec2.process(
            parameters,
            ec2_query(
                "CreateImage",
                [
                    ("NoReboot", str(not task.stop).lower()),
                    ("InstanceId", parameters.get(PARAMETER_INSTANCE_ID)),
                    ("Name", ami_name(task)),
                    ("Description", AMI_DESCRIPTION),
                ],
            ),
        )
        ami_id = decode_image_id(response) if response is not None else None
        if ami_id is None:
            return self._fail(subscription, STATUS_CREATE_FAILED)

        logger.info("AMI %s requested for subscription %s", ami_id, subscription)
        self._store.next_step(
            subscription, StepUpdate(phase="tagging-ami", snapshot_id=ami_id, done=1)
        )
        tagged = decode_return_flag(
            self._ec2.process(
                parameters,
                ec2_query(
                    "CreateTags",
                    [
                        ("ResourceId.1", ami_id),
                        ("Tag.1.Key", TAG_SUBSCRIPTION),
                        ("Tag.1.Value", subscription),
                        ("Tag.2.Key", TAG_AUDIT),
                        ("Tag.2.Value", task.author),
                    ],
                ),
            )
        )
        if not tagged:
            return self._fail(subscription, STATUS_TAG_FAILED)

        # Remote availability is checked later by the catalog
        return self._store.end_task(
            subscription, False, StepUpdate(done=2, phase=PHASE_CHECKING_AVAILABILITY)
        )

    def delete(self, task: SnapshotTask) -> SnapshotTask:
        """Unregister the AMI of the task, then delete its volume snapshots."""
        subscription = task.subscription
        self._store.next_step(subscription, StepUpdate(phase="searching-ami", workload=WORKLOAD))

        ami_id = task.snapshot_id
        ami = None
        if ami_id is not None:
            try:
                ami = self._catalog.find_by_id(subscription, ami_id)
            except SnapshotQueryError as exc:
                logger.warning("AMI %s lookup failed: %s", ami_id, exc)
        if ami is None:
            return self._fail(subscription, STATUS_NOT_FOUND)

        parameters = self._ec2.get_parameters(subscription)
        self._store.next_step(subscription, StepUpdate(phase="unregistering-ami", done=1))
        unregistered = decode_return_flag(
            self._ec2.process(parameters, ec2_query("DeregisterImage", [("ImageId", ami_id)]))
        )
        if not unregistered:
            return self._fail(subscription, STATUS_UNREGISTERING_FAILED)

        self._store.next_step(subscription, StepUpdate(phase="deleting-snapshots", done=2))
        snapshot_ids = [volume.id for volume in ami.volumes]
        if snapshot_ids:
            deleted = decode_return_flag(
                self._ec2.process(
                    parameters, ec2_query("DeleteSnapshot", indexed("SnapshotId", snapshot_ids))
                )
            )
            if not deleted:
                return self._fail(subscription, STATUS_DELETING_SNAPSHOTS_FAILED)

        logger.info("AMI %s deleted for subscription %s", ami_id, subscription)
        return self._store.end_task(
            subscription,
            False,
            StepUpdate(done=WORKLOAD, finished_remote=True, status_text=CLEAR),
        )

    def _fail(self, subscription: int, status_text: str) -> SnapshotTask:
        logger.warning("Snapshot task of subscription %s failed: %s", subscription, status_text)
        return self._store.end_task(
            subscription, True, StepUpdate(status_text=status_text, finished_remote=True)
        )
