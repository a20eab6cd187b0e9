"""
Example domain entities.

Column names are declared per field; ``created_by`` shows a python name that
differs from its column (``create_author``).
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class User(BaseModel):
    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    email: str
    family_name: str = ""
    given_name: str = ""
    city: str = ""
    age: int = 0

    created_by: uuid.UUID | None = Field(default=None, json_schema_extra={"db": "create_author"})
    create_time: datetime | None = None
    updated_by: uuid.UUID | None = Field(default=None, json_schema_extra={"db": "update_author"})
    update_time: datetime | None = None
    deleted_by: uuid.UUID | None = Field(default=None, json_schema_extra={"db": "delete_author"})
    delete_time: datetime | None = None


class UserListQuery(BaseModel):
    """Input for the ``user/list`` template.

    ``where`` and ``select`` are trusted SQL fragments; ``where`` may use the
    ``:age`` and ``:cities`` markers.
    """

    age: int = 0
    cities: list[str] = Field(default_factory=list)
    limit: int = 0
    select: str = ""
    where: str = ""
