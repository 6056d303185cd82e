"""Test doubles for the host collaborators."""

from __future__ import annotations

from datetime import datetime, timezone
from urllib.parse import parse_qsl

from aws_vm_plugin.domain.models import SnapshotOperation, SnapshotTask
from aws_vm_plugin.gateway.http import SignedRequest
from aws_vm_plugin.snapshots.store import InMemoryTaskStore

SUBSCRIPTION = 42
FIXED_NOW = datetime(2017, 9, 13, 17, 12, 30, tzinfo=timezone.utc)


class FakeGateway:
    """Answers by EC2 action, optionally narrowed on body parameters."""

    def __init__(self) -> None:
        self.requests: list[SignedRequest] = []
        self._handlers: list[tuple[str, dict[str, str], str | None]] = []

    def on(self, action: str, response: str | None, when: dict[str, str] | None = None) -> None:
        self._handlers.append((action, when or {}, response))

    def execute(self, request: SignedRequest) -> str | None:
        self.requests.append(request)
        params = dict(parse_qsl(request.body or ""))
        for action, when, response in reversed(self._handlers):
            if params.get("Action") == action and all(
                params.get(k) == v for k, v in when.items()
            ):
                return response
        return None

    def bodies(self, action: str | None = None) -> list[dict[str, str]]:
        parsed = [dict(parse_qsl(r.body or "")) for r in self.requests]
        return [p for p in parsed if action is None or p.get("Action") == action]


class StaticParameters:
    def __init__(self, parameters: dict[str, str]) -> None:
        self.parameters = parameters

    def get_parameters(self, subscription: int) -> dict[str, str]:
        return dict(self.parameters)


class Users:
    def __init__(self, *users) -> None:
        self._users = {user.id: user for user in users}

    def find_by_id(self, login: str):
        return self._users.get(login)


def new_task(
    store: InMemoryTaskStore,
    operation: SnapshotOperation = SnapshotOperation.CREATE,
    **fields: object,
) -> SnapshotTask:
    task = SnapshotTask(
        subscription=SUBSCRIPTION,
        operation=operation,
        author="ligoj-admin",
        start=FIXED_NOW,
    )
    for name, value in fields.items():
        setattr(task, name, value)
    store.save(task)
    return task
