"""End-to-end run of the users example on in-memory SQLite."""

import uuid
from collections.abc import Generator

import pytest

from sqlt import DataSource, NotFoundError, ProductTypeEnum
from sqlt.example.__main__ import build_api
from sqlt.example.api import ApiContext, UserAPIError, UsersAPI
from sqlt.example.entity import User, UserListQuery

AUTHOR = uuid.UUID("00000000-0000-0000-0000-00000000000a")


@pytest.fixture
def api() -> Generator[UsersAPI, None, None]:
    a = build_api(DataSource(product_type=ProductTypeEnum.SQLITE, database=":memory:"))
    a.create_user_schema(ApiContext.create(5, AUTHOR))
    yield a
    a.lib.db.close()


def _ctx() -> ApiContext:
    return ApiContext.create(5, AUTHOR)


def test_default_timeout() -> None:
    ctx = ApiContext.create(0, AUTHOR)
    assert 0 < ctx.remaining() <= 1.0
    assert ctx.author == AUTHOR


def test_create_get_update(api: UsersAPI) -> None:
    user = api.create_user(_ctx(), User(email="a@example.com", city="Tampa"))
    assert user.created_by == AUTHOR
    assert user.create_time is not None

    got = api.get_user(_ctx(), user.id)
    assert got.id == user.id
    assert got.email == "a@example.com"
    assert got.created_by == AUTHOR

    got.age = 99
    updated = api.update_user(_ctx(), got)
    assert updated.age == 99
    assert updated.updated_by == AUTHOR
    assert api.get_user(_ctx(), user.id).age == 99


def test_list_and_job(api: UsersAPI) -> None:
    u1 = api.create_user(_ctx(), User(email="one@example.com", city="São Paulo"))
    api.create_user(_ctx(), User(email="two@example.com", city="Tampa"))
    u1.age = 99
    api.update_user(_ctx(), u1)

    users = api.list_users(
        _ctx(),
        UserListQuery(
            where="city in (:cities) and age > :age",
            limit=10,
            age=98,
            cities=["Tampa", "São Paulo", "Rio de Janeiro"],
        ),
    )
    assert [u.id for u in users] == [u1.id]
    assert len(api.list_users(_ctx(), UserListQuery())) == 2

    seen = []
    assert api.user_job(_ctx(), lambda u: seen.append(u.email)) == 2
    assert sorted(seen) == ["one@example.com", "two@example.com"]


def test_get_unknown_user(api: UsersAPI) -> None:
    with pytest.raises(UserAPIError) as exc:
        api.get_user(_ctx(), uuid.uuid4())
    assert isinstance(exc.value.__cause__, NotFoundError)
    assert exc.value.__cause__.operation == "get"
    assert exc.value.__cause__.template == "user/get"


def test_duplicate_email(api: UsersAPI) -> None:
    api.create_user(_ctx(), User(email="same@example.com"))
    with pytest.raises(UserAPIError, match="error creating user"):
        api.create_user(_ctx(), User(email="same@example.com"))
