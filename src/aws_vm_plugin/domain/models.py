"""Domain objects for AMI snapshots and EC2 instances."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from aws_vm_plugin.utils.time import EPOCH


class SnapshotOperation(str, Enum):
    CREATE = "create"
    DELETE = "delete"


@dataclass
class SnapshotTask:
    """Locally tracked progress of one create/delete lifecycle on an AMI."""

    subscription: int
    operation: SnapshotOperation
    author: str
    start: datetime
    end: datetime | None = None
    stop: bool = False
    snapshot_id: str | None = None
    phase: str | None = None
    done: int = 0
    workload: int = 0
    failed: bool = False
    finished_remote: bool = False
    status_text: str | None = None

    @property
    def finished_locally(self) -> bool:
        return self.end is not None


@dataclass
class User:
    id: str
    first_name: str | None = None
    last_name: str | None = None
    company: str | None = None


@dataclass
class VolumeSnapshot:
    """EBS snapshot backing one block device of an AMI."""

    id: str | None
    name: str | None = None
    size: int = 0


@dataclass
class Artifact:
    """AMI as listed by the provider, or synthesized from a task."""

    id: str | None
    name: str | None = None
    description: str | None = None
    status_text: str | None = None
    available: bool = False
    pending: bool = False
    date: datetime = EPOCH
    author: User | None = None
    volumes: list[VolumeSnapshot] = field(default_factory=list)
    stop_requested: bool = False
    operation: SnapshotOperation | None = None

    def set_pending(self, status_text: str | None) -> None:
        self.pending = True
        self.available = False
        self.status_text = status_text


class VmStatus(str, Enum):
    POWERED_ON = "powered_on"
    POWERED_OFF = "powered_off"


class VmOperation(str, Enum):
    ON = "on"
    OFF = "off"
    SHUTDOWN = "shutdown"
    REBOOT = "reboot"
    RESET = "reset"
    SUSPEND = "suspend"


@dataclass(frozen=True)
class VmNetwork:
    type: str
    ip: str
    dns: str | None = None


@dataclass
class Vm:
    id: str
    name: str
    description: str | None = None
    status: VmStatus | None = None
    busy: bool = False
    deployed: bool = False
    vpc: str | None = None
    az: str | None = None
    cpu: int = 0
    ram: int = 0
    networks: list[VmNetwork] = field(default_factory=list)


TAG_PREFIX = "ligoj:"
TAG_SUBSCRIPTION = TAG_PREFIX + "subscription"
TAG_AUDIT = TAG_PREFIX + "audit"
