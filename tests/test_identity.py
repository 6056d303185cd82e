from __future__ import annotations

from unittest.mock import MagicMock

from aws_vm_plugin.domain.models import User
from aws_vm_plugin.identity import IdentityResolver
from helpers import Users


def test_resolve_known_user() -> None:
    user = User(id="jdoe", first_name="John", last_name="Doe", company="ligoj")
    assert IdentityResolver(Users(user)).resolve("jdoe") is user


def test_resolve_unknown_user() -> None:
    assert IdentityResolver(Users()).resolve("jdoe") == User(id="jdoe")
    assert IdentityResolver()("jdoe") == User(id="jdoe")


def test_resolve_repository_failure() -> None:
    repository = MagicMock()
    repository.find_by_id.side_effect = RuntimeError("directory unavailable")

    assert IdentityResolver(repository).resolve("jdoe") == User(id="jdoe")
    repository.find_by_id.assert_called_once_with("jdoe")
