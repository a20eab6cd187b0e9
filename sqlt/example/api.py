"""
Users API built on sqlt templates under ``sqlt/example/sql/user``.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from datetime import datetime, timezone

from sqlt import SQLT, Context, SQLTError
from sqlt.example.entity import User, UserListQuery

_log = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UserAPIError(RuntimeError):
    """Raised by UsersAPI; the sqlt error is chained as ``__cause__``."""


class ApiContext(Context):
    """Context carrying the acting user."""

    def __init__(self, deadline: float | None = None, author: uuid.UUID | None = None) -> None:
        super().__init__(deadline)
        self.author = author

    @classmethod
    def create(cls, timeout: float = 0, author: uuid.UUID | None = None) -> ApiContext:
        if timeout == 0:
            timeout = 1.0
        return cls(time.monotonic() + timeout, author)


class UsersAPI:
    def __init__(self, lib: SQLT) -> None:
        self.lib = lib

    def create_user_schema(self, ctx: Context) -> None:
        try:
            self.lib.exec("user/schema", ctx=ctx)
        except SQLTError as e:
            raise UserAPIError("error creating user schema") from e

    def create_user(self, ctx: ApiContext, user: User) -> User:
        user.created_by = ctx.author
        user.create_time = _utc_now()
        try:
            return self.lib.create("user/create", user, ctx=ctx)
        except SQLTError as e:
            raise UserAPIError("error creating user") from e

    def get_user(self, ctx: ApiContext, user_id: uuid.UUID) -> User:
        try:
            return self.lib.get("user/get", User, {"id": user_id}, ctx=ctx)
        except SQLTError as e:
            raise UserAPIError("error getting user") from e

    def list_users(self, ctx: ApiContext, query: UserListQuery) -> list[User]:
        try:
            return self.lib.select("user/list", User, query, ctx=ctx)
        except SQLTError as e:
            raise UserAPIError("error listing users") from e

    def update_user(self, ctx: ApiContext, user: User) -> User:
        user.updated_by = ctx.author
        user.update_time = _utc_now()
        try:
            return self.lib.update("user/update", user, ctx=ctx)
        except SQLTError as e:
            raise UserAPIError("error updating user") from e

    def user_job(self, ctx: ApiContext, job: Callable[[User], object] | None = None) -> int:
        """Run *job* for every user, one row at a time; returns users visited."""

        def visit(scan: Callable[[object], object]) -> None:
            user = scan(User)
            if job is not None:
                job(user)
            _log.info("UserJob completed for User: %s", user.id)

        try:
            return self.lib.iterate("user/list", visit, UserListQuery(), ctx=ctx)
        except SQLTError as e:
            raise UserAPIError("error running user job") from e
