from __future__ import annotations

import os

import pytest

from aws_vm_plugin.auth.signer import AWS4Signer
from aws_vm_plugin.config import AWSSettings
from aws_vm_plugin.gateway.ec2 import (
    PARAMETER_ACCESS_KEY_ID,
    PARAMETER_INSTANCE_ID,
    PARAMETER_REGION,
    PARAMETER_SECRET_ACCESS_KEY,
    Ec2Client,
)
from aws_vm_plugin.identity import IdentityResolver
from aws_vm_plugin.snapshots.catalog import SnapshotCatalog
from aws_vm_plugin.snapshots.orchestrator import SnapshotOrchestrator
from aws_vm_plugin.snapshots.store import InMemoryTaskStore
from helpers import FIXED_NOW, FakeGateway, StaticParameters


def pytest_sessionstart(session: pytest.Session) -> None:
    # Keep a developer .env from changing the endpoints under test.
    os.environ.setdefault("AWS_VM_DEFAULT_REGION", "eu-west-1")
    os.environ.setdefault("AWS_VM_HOST_SUFFIX", "amazonaws.com")


@pytest.fixture
def parameters() -> StaticParameters:
    return StaticParameters(
        {
            PARAMETER_ACCESS_KEY_ID: "AKIDEXAMPLE",
            PARAMETER_SECRET_ACCESS_KEY: "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY",
            PARAMETER_REGION: "eu-west-1",
            PARAMETER_INSTANCE_ID: "i-12345678",
        }
    )


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def ec2(gateway: FakeGateway, parameters: StaticParameters) -> Ec2Client:
    return Ec2Client(
        gateway,
        parameters,
        signer=AWS4Signer(clock=lambda: FIXED_NOW),
        settings=AWSSettings(),
    )


@pytest.fixture
def store() -> InMemoryTaskStore:
    return InMemoryTaskStore()


@pytest.fixture
def catalog(ec2: Ec2Client, store: InMemoryTaskStore) -> SnapshotCatalog:
    return SnapshotCatalog(ec2, IdentityResolver(), store)


@pytest.fixture
def orchestrator(
    ec2: Ec2Client, catalog: SnapshotCatalog, store: InMemoryTaskStore
) -> SnapshotOrchestrator:
    return SnapshotOrchestrator(ec2, catalog, store)
