"""Create and delete lifecycles of AMI snapshots."""

from __future__ import annotations

import pytest

from aws_vm_plugin.domain.models import SnapshotOperation
from aws_vm_plugin.snapshots.orchestrator import (
    STATUS_CREATE_FAILED,
    STATUS_DELETING_SNAPSHOTS_FAILED,
    STATUS_NOT_FOUND,
    STATUS_TAG_FAILED,
    STATUS_UNREGISTERING_FAILED,
    SnapshotOrchestrator,
    ami_name,
)
from aws_vm_plugin.snapshots.sqlite_store import SqliteTaskStore
from ec2_samples import ack, create_image, describe_images, image_item
from helpers import SUBSCRIPTION, FakeGateway, new_task

AMI = "ami-00000004"


def _state(task) -> tuple:
    return (
        task.failed,
        task.finished_remote,
        task.finished_locally,
        task.phase,
        task.done,
        task.workload,
        task.status_text,
    )


class TestCreate:
    def test_name(self, store) -> None:
        task = new_task(store)
        assert ami_name(task) == "ligoj-snapshot/42/2017-09-13_17-12-30"

    def test_create_failed(self, orchestrator: SnapshotOrchestrator, store) -> None:
        task = orchestrator.create(new_task(store))

        assert _state(task) == (
            True,
            True,
            True,
            "creating-ami",
            0,
            3,
            "service:vm:aws:ami-create-failed",
        )
        assert task.snapshot_id is None

    def test_create_without_image_id(
        self, orchestrator: SnapshotOrchestrator, gateway: FakeGateway, store
    ) -> None:
        gateway.on("CreateImage", "<CreateImageResponse/>")
        task = orchestrator.create(new_task(store))

        assert task.failed
        assert task.status_text == STATUS_CREATE_FAILED
        assert gateway.bodies("CreateTags") == []

    def test_tag_failed(
        self, orchestrator: SnapshotOrchestrator, gateway: FakeGateway, store
    ) -> None:
        gateway.on("CreateImage", create_image(AMI))

        task = orchestrator.create(new_task(store))

        assert _state(task) == (True, True, True, "tagging-ami", 1, 3, STATUS_TAG_FAILED)
        assert task.snapshot_id == AMI

    def test_tag_not_acknowledged(
        self, orchestrator: SnapshotOrchestrator, gateway: FakeGateway, store
    ) -> None:
        gateway.on("CreateImage", create_image(AMI))
        gateway.on("CreateTags", ack("CreateTags", "false"))

        task = orchestrator.create(new_task(store))

        assert task.failed
        assert task.status_text == STATUS_TAG_FAILED

    def test_create(self, orchestrator: SnapshotOrchestrator, gateway: FakeGateway, store) -> None:
        gateway.on("CreateImage", create_image(AMI))
        gateway.on("CreateTags", ack("CreateTags"))

        task = orchestrator.create(new_task(store))

        assert _state(task) == (False, False, True, "checking-availability", 2, 3, None)
        assert task.snapshot_id == AMI
        assert store.get_task(SUBSCRIPTION) is task

        create = gateway.bodies("CreateImage")[0]
        assert create == {
            "Action": "CreateImage",
            "NoReboot": "true",
            "InstanceId": "i-12345678",
            "Name": "ligoj-snapshot/42/2017-09-13_17-12-30",
            "Description": "Snapshot created from Ligoj",
            "Version": "2016-11-15",
        }
        assert gateway.bodies("CreateTags")[0] == {
            "Action": "CreateTags",
            "ResourceId.1": AMI,
            "Tag.1.Key": "ligoj:subscription",
            "Tag.1.Value": "42",
            "Tag.2.Key": "ligoj:audit",
            "Tag.2.Value": "ligoj-admin",
            "Version": "2016-11-15",
        }

    def test_create_with_stop(
        self, orchestrator: SnapshotOrchestrator, gateway: FakeGateway, store
    ) -> None:
        gateway.on("CreateImage", create_image(AMI))
        gateway.on("CreateTags", ack("CreateTags"))

        orchestrator.create(new_task(store, stop=True))

        assert gateway.bodies("CreateImage")[0]["NoReboot"] == "false"

    def test_create_with_sqlite_store(self, ec2, catalog, gateway: FakeGateway, tmp_path) -> None:
        store = SqliteTaskStore(str(tmp_path / "tasks.sqlite"))
        try:
            new_task(store)
            gateway.on("CreateImage", create_image(AMI))
            gateway.on("CreateTags", ack("CreateTags"))

            task = SnapshotOrchestrator(ec2, catalog, store).create(store.get_task(SUBSCRIPTION))

            assert _state(task) == (False, False, True, "checking-availability", 2, 3, None)
            assert store.get_task(SUBSCRIPTION) == task
        finally:
            store.close()


class TestDelete:
    @pytest.fixture
    def task(self, store):
        return new_task(store, SnapshotOperation.DELETE, snapshot_id=AMI)

    def _found(self, gateway: FakeGateway, *snapshots: str) -> None:
        gateway.on(
            "DescribeImages",
            describe_images(image_item(AMI, snapshots=snapshots)),
            when={"ImageId.1": AMI},
        )

    def test_not_found(
        self, orchestrator: SnapshotOrchestrator, gateway: FakeGateway, task
    ) -> None:
        gateway.on("DescribeImages", describe_images())

        task = orchestrator.delete(task)

        assert _state(task) == (True, True, True, "searching-ami", 0, 3, STATUS_NOT_FOUND)
        assert gateway.bodies("DescribeImages")[0]["ImageId.1"] == AMI
        assert gateway.bodies("DeregisterImage") == []

    def test_listed_before_lookup(
        self, orchestrator: SnapshotOrchestrator, catalog, gateway: FakeGateway, store
    ) -> None:
        gateway.on(
            "DescribeImages",
            describe_images(image_item(AMI)),
            when={"Filter.1.Value": str(SUBSCRIPTION)},
        )
        task = store.start_task(
            SUBSCRIPTION, SnapshotOperation.DELETE, "ligoj-admin", snapshot_id=AMI
        )
        catalog.find_all_matching(SUBSCRIPTION, "", task)
        assert not store.get_task(SUBSCRIPTION).finished_remote

        task = orchestrator.delete(task)

        assert _state(task) == (True, True, True, "searching-ami", 0, 3, STATUS_NOT_FOUND)

    def test_not_found_without_id(
        self, orchestrator: SnapshotOrchestrator, gateway: FakeGateway, store
    ) -> None:
        task = orchestrator.delete(new_task(store, SnapshotOperation.DELETE))

        assert task.status_text == STATUS_NOT_FOUND
        assert gateway.requests == []

    def test_not_found_on_unreadable_listing(
        self, orchestrator: SnapshotOrchestrator, gateway: FakeGateway, task
    ) -> None:
        gateway.on("DescribeImages", "<DescribeImagesResponse>")

        task = orchestrator.delete(task)

        assert task.failed
        assert task.status_text == STATUS_NOT_FOUND

    @pytest.mark.parametrize("response", [None, ack("DeregisterImage", "false")])
    def test_unregistering_failed(
        self, orchestrator: SnapshotOrchestrator, gateway: FakeGateway, task, response
    ) -> None:
        self._found(gateway, "snap-1")
        gateway.on("DeregisterImage", response)

        task = orchestrator.delete(task)

        assert _state(task) == (
            True,
            True,
            True,
            "unregistering-ami",
            1,
            3,
            STATUS_UNREGISTERING_FAILED,
        )
        assert gateway.bodies("DeleteSnapshot") == []

    @pytest.mark.parametrize("response", [None, ack("DeleteSnapshot", "false")])
    def test_deleting_snapshots_failed(
        self, orchestrator: SnapshotOrchestrator, gateway: FakeGateway, task, response
    ) -> None:
        self._found(gateway, "snap-1")
        gateway.on("DeregisterImage", ack("DeregisterImage"))
        gateway.on("DeleteSnapshot", response)

        task = orchestrator.delete(task)

        assert _state(task) == (
            True,
            True,
            True,
            "deleting-snapshots",
            2,
            3,
            STATUS_DELETING_SNAPSHOTS_FAILED,
        )

    def test_delete(self, orchestrator: SnapshotOrchestrator, gateway: FakeGateway, task) -> None:
        self._found(gateway, "snap-1", "snap-2")
        gateway.on("DeregisterImage", ack("DeregisterImage"))
        gateway.on("DeleteSnapshot", ack("DeleteSnapshot"))
        task.status_text = "previous"

        task = orchestrator.delete(task)

        assert _state(task) == (False, True, True, "deleting-snapshots", 3, 3, None)
        assert gateway.bodies("DeregisterImage")[0]["ImageId"] == AMI
        deletions = gateway.bodies("DeleteSnapshot")
        assert len(deletions) == 1
        assert deletions[0]["SnapshotId.1"] == "snap-1"
        assert deletions[0]["SnapshotId.2"] == "snap-2"

    def test_delete_without_volume(
        self, orchestrator: SnapshotOrchestrator, gateway: FakeGateway, task
    ) -> None:
        self._found(gateway)
        gateway.on("DeregisterImage", ack("DeregisterImage"))

        task = orchestrator.delete(task)

        assert not task.failed
        assert task.done == 3
        assert gateway.bodies("DeleteSnapshot") == []
