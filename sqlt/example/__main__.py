#!/usr/bin/env python3
"""
Example: create the users table, create/get/update users, list with an IN
filter and walk all users with iterate().

Usage:
  python -m sqlt.example [--product-type sqlite] [--database :memory:] [--debug]
  python -m sqlt.example --product-type postgres --host localhost \
      --database postgres --user postgres --password postgres
"""

import argparse
import logging
import os
import time
import uuid

from sqlt import SQLT, DataSource, ProductTypeEnum, TemplateRegistry
from sqlt.example.api import ApiContext, UsersAPI
from sqlt.example.entity import User, UserListQuery


def build_api(datasource: DataSource, *, debug: bool = False) -> UsersAPI:
    registry = TemplateRegistry.from_package("sqlt.example", "sql", ["user/*.sql"])
    return UsersAPI(SQLT(datasource, registry, debug=debug))


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the sqlt users example.")
    parser.add_argument(
        "--product-type",
        default=os.environ.get("SQLT_EXAMPLE_PRODUCT_TYPE", "sqlite"),
        choices=[ProductTypeEnum.SQLITE.value, ProductTypeEnum.POSTGRES.value],
    )
    parser.add_argument("--database", default=os.environ.get("SQLT_EXAMPLE_DATABASE", ":memory:"))
    parser.add_argument("--host", default=os.environ.get("SQLT_EXAMPLE_HOST"))
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--user", default=os.environ.get("SQLT_EXAMPLE_USER"))
    parser.add_argument("--password", default=os.environ.get("SQLT_EXAMPLE_PASSWORD", ""))
    parser.add_argument("--timeout", type=float, default=5.0, help="Seconds per call")
    parser.add_argument("--debug", action="store_true", help="Trace every statement")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    api = build_api(
        DataSource(
            product_type=ProductTypeEnum(args.product_type),
            database=args.database,
            host=args.host,
            port=args.port,
            username=args.user,
            password=args.password,
        ),
        debug=args.debug,
    )

    me = uuid.uuid4()

    def ctx() -> ApiContext:
        return ApiContext.create(args.timeout, me)

    api.create_user_schema(ctx())

    user = api.create_user(ctx(), User(city="São Paulo", email=f"notan@email+{time.time_ns()}.lol"))
    print("CreateUser:", user.model_dump())

    user2 = api.create_user(ctx(), User(city="Tampa", email=f"stillnotan@email+{time.time_ns()}.lol"))
    print("CreateUser:", user2.model_dump())

    user = api.get_user(ctx(), user.id)
    print("GetUser:", user.model_dump())

    user.age = 99
    user = api.update_user(ctx(), user)
    print("UpdateUser:", user.model_dump())

    users = api.list_users(
        ctx(),
        UserListQuery(
            where="city in (:cities) and age > :age",
            limit=10,
            age=98,
            cities=["Tampa", "São Paulo", "Rio de Janeiro"],
        ),
    )
    print("ListUsers:", [u.model_dump() for u in users])

    print("UserJob visited:", api.user_job(ctx()))


if __name__ == "__main__":
    main()
