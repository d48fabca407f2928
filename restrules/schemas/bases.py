"""
restrules schemas of the bundled sample resources

The sample resources (users and their orders) only exist to exercise
the conventions end to end. Version 1 of the API exposes users without
the ``display_name`` field, which has been added in version 2.
"""

from typing import Optional

import pydantic


class Token(pydantic.BaseModel):
    access_token: str
    token_type: str


class UserV1(pydantic.BaseModel):
    id: pydantic.NonNegativeInt
    name: pydantic.constr(max_length=255)
    email: pydantic.constr(max_length=255)
    active: bool
    created: pydantic.NonNegativeInt


class User(UserV1):
    display_name: Optional[pydantic.constr(max_length=255)] = None


class UserCreation(pydantic.BaseModel):
    name: pydantic.constr(min_length=1, max_length=255)
    email: pydantic.constr(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    display_name: Optional[pydantic.constr(max_length=255)] = None
    active: bool = True


class Order(pydantic.BaseModel):
    id: pydantic.NonNegativeInt
    user_id: pydantic.NonNegativeInt
    item: pydantic.constr(max_length=255)
    quantity: pydantic.PositiveInt
    status: pydantic.constr(max_length=32)
    created: pydantic.NonNegativeInt
