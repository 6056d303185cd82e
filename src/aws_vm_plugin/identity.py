"""Resolution of author logins to user identities."""

from __future__ import annotations

import logging
from typing import Protocol

from aws_vm_plugin.domain.models import User

logger = logging.getLogger(__name__)


class UserRepository(Protocol):
    def find_by_id(self, login: str) -> User | None: ...


class IdentityResolver:
    """Resolve a login through the user repository.

    Unknown users, and repository failures, give a placeholder carrying
    only the login.
    """

    def __init__(self, repository: UserRepository | None = None) -> None:
        self._repository = repository

    def resolve(self, login: str) -> User:
        if self._repository is not None:
            try:
                user = self._repository.find_by_id(login)
            except Exception as exc:
                logger.warning("User lookup failed for %s: %s", login, exc)
                user = None
            if user is not None:
                return user
        return User(id=login)

    __call__ = resolve
