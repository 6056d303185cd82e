"""AWS VM plugin: wiring of the snapshot and instance operations."""

from __future__ import annotations

import logging
from collections.abc import Mapping

from aws_vm_plugin.config import Settings, load_settings
from aws_vm_plugin.domain.models import Artifact, SnapshotTask, Vm, VmOperation
from aws_vm_plugin.gateway.ec2 import KEY, Ec2Client, ParameterSource
from aws_vm_plugin.gateway.http import Gateway, HttpGateway
from aws_vm_plugin.identity import IdentityResolver, UserRepository
from aws_vm_plugin.snapshots.catalog import SnapshotCatalog
from aws_vm_plugin.snapshots.orchestrator import SnapshotOrchestrator
from aws_vm_plugin.snapshots.sqlite_store import SqliteTaskStore
from aws_vm_plugin.snapshots.store import TaskStore
from aws_vm_plugin.vm.instance_types import InstanceTypeCatalog
from aws_vm_plugin.vm.instances import VmService

logger = logging.getLogger(__name__)


class VmAwsPlugin:
    """Entry point used by the host VM service.

    The host owns subscription parameters and users; they are passed in
    as collaborators. Snapshot tasks go to ``store``, or to a SQLite store
    configured by ``settings.storage`` when none is given.
    """

    key = KEY

    def __init__(
        self,
        parameters: ParameterSource,
        store: TaskStore | None = None,
        users: UserRepository | None = None,
        gateway: Gateway | None = None,
        settings: Settings | None = None,
        instance_types: InstanceTypeCatalog | None = None,
    ) -> None:
        settings = settings or load_settings()
        if store is None:
            store = SqliteTaskStore(settings.storage.sqlite_path, wal=settings.storage.sqlite_wal)
        self.store = store
        self._ec2 = Ec2Client(
            gateway or HttpGateway(settings.execution.http_timeout_seconds),
            parameters,
            settings=settings.aws,
        )
        identity = IdentityResolver(users)
        self._catalog = SnapshotCatalog(self._ec2, identity, store)
        self._orchestrator = SnapshotOrchestrator(self._ec2, self._catalog, store)
        self._vms = VmService(self._ec2, instance_types or InstanceTypeCatalog.load_default())

    # Snapshots

    def snapshot(self, task: SnapshotTask) -> SnapshotTask:
        logger.info(
            "Snapshot requested by %s on subscription %s", task.author, task.subscription
        )
        return self._orchestrator.create(task)

    def delete(self, task: SnapshotTask) -> SnapshotTask:
        logger.info(
            "Deletion of AMI %s requested by %s on subscription %s",
            task.snapshot_id,
            task.author,
            task.subscription,
        )
        return self._orchestrator.delete(task)

    def complete_status(self, task: SnapshotTask) -> None:
        self._catalog.complete_status(task)

    def find_all_snapshots(self, subscription: int, criteria: str | None) -> list[Artifact]:
        return self._catalog.find_all_by_name_or_id(subscription, (criteria or "").strip())

    # Instances

    def execute(self, subscription: int, operation: VmOperation) -> str:
        return self._vms.execute(subscription, operation)

    def find_all_by_name_or_id(self, parameters: Mapping[str, str], criteria: str) -> list[Vm]:
        return self._vms.find_all_by_name_or_id(parameters, criteria)

    def get_vm_details(self, parameters: Mapping[str, str]) -> Vm:
        return self._vms.get_vm_details(parameters)

    def check_status(self, parameters: Mapping[str, str]) -> bool:
        return self._ec2.validate_access(parameters)

    def check_subscription_status(self, parameters: Mapping[str, str]) -> dict[str, object]:
        return {"vm": self._vms.get_vm_details(parameters)}

    def link(self, subscription: int) -> Vm:
        """Validate the instance of a new subscription exists."""
        return self._vms.get_vm_details(self._ec2.get_parameters(subscription))
