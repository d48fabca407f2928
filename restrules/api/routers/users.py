"""
restrules router module for /users requests
"""

import logging
from typing import Any, Dict

import pydantic
from fastapi import Depends, Response

from ._router import router
from ..base import Conflict, NotFound
from ..dependency import LocalRequestData, get_shaping_query, require_role
from ..etag import ETag
from .. import helpers, versioning
from ... import schemas, shaping


logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"


@router.get("/users", tags=["Users"], response_model=schemas.Page)
@versioning.versions(minimal=1)
async def search_for_users(
        query: shaping.ShapingQuery = Depends(get_shaping_query),
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Return one page of all users that fulfill *all* filters given as query parameters

    Any field of the user representation can be used as filter (e.g.
    `?active=true`) and as sort key (e.g. `?sort=-created,name`). The
    page size `limit` is bounded by the server's configured maximum.
    """

    page = helpers.shape_collection(
        local.store.list_users(),
        helpers.user_schema(local),
        helpers.user_links(local),
        query,
        local
    )
    etag = ETag(local.request, local.config.caching.etags)
    etag.compare(page)
    etag.add_header(local.response, page)
    return page


@router.post("/users", tags=["Users"], status_code=201, response_model=Dict[str, Any])
@versioning.versions(minimal=1)
async def create_new_user(
        creation: schemas.UserCreation,
        local: LocalRequestData = Depends(LocalRequestData),
        _: Any = Depends(require_role(ADMIN_ROLE))
):
    """
    Create a new user and return its representation

    A `409` error response will be returned if the name is already taken.
    """

    if local.store.find_user_by_name(creation.name) is not None:
        raise Conflict(f"The name {creation.name!r} is already taken.", f"name={creation.name!r}")
    user = local.store.create_user(creation)
    links = helpers.user_links(local)
    logger.info(f"User {user.id} ({user.name!r}) created by {local.token.subject!r}")
    local.response.headers["Location"] = links.item_path(user.model_dump())
    return helpers.represent(user, helpers.user_schema(local), links)


@router.get("/users/{user_id}", tags=["Users"], response_model=Dict[str, Any])
@versioning.versions(minimal=1)
async def get_user_by_id(
        user_id: pydantic.NonNegativeInt,
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Return the representation of the user identified by its ID

    A `404` error response will be returned if the user is unknown.
    A `304` response will be returned if the `If-None-Match` header
    contains the current entity tag of the representation.
    """

    user = helpers.return_one(user_id, local.store.get_user, "User")
    representation = helpers.represent(user, helpers.user_schema(local), helpers.user_links(local))
    etag = ETag(local.request, local.config.caching.etags)
    etag.compare(representation)
    etag.add_header(local.response, representation)
    return representation


@router.put("/users/{user_id}", tags=["Users"], response_model=Dict[str, Any])
@versioning.versions(minimal=1)
async def replace_user(
        user_id: pydantic.NonNegativeInt,
        creation: schemas.UserCreation,
        local: LocalRequestData = Depends(LocalRequestData),
        _: Any = Depends(require_role(ADMIN_ROLE))
):
    """
    Replace the user identified by its ID, keeping only its ID and creation time

    If an `If-Match` header is given, it must contain the current entity
    tag of the user's representation (`412` error response otherwise).
    """

    schema = helpers.user_schema(local)
    links = helpers.user_links(local)
    user = helpers.return_one(user_id, local.store.get_user, "User")
    ETag(local.request, local.config.caching.etags).compare(helpers.represent(user, schema, links))

    other = local.store.find_user_by_name(creation.name)
    if other is not None and other.id != user_id:
        raise Conflict(f"The name {creation.name!r} is already taken.", f"name={creation.name!r}")

    updated = local.store.replace_user(user_id, creation)
    if updated is None:
        raise NotFound(f"User with ID {user_id!r}")
    representation = helpers.represent(updated, schema, links)
    ETag(local.request, local.config.caching.etags).add_header(local.response, representation)
    return representation


@router.delete("/users/{user_id}", tags=["Users"], status_code=204, response_class=Response)
@versioning.versions(minimal=1)
async def delete_user(
        user_id: pydantic.NonNegativeInt,
        local: LocalRequestData = Depends(LocalRequestData),
        _: Any = Depends(require_role(ADMIN_ROLE))
):
    """
    Delete the user identified by its ID together with all of its orders

    If an `If-Match` header is given, it must contain the current entity
    tag of the user's representation (`412` error response otherwise).
    """

    user = helpers.return_one(user_id, local.store.get_user, "User")
    ETag(local.request, local.config.caching.etags).compare(
        helpers.represent(user, helpers.user_schema(local), helpers.user_links(local))
    )
    local.store.delete_user(user_id)
    logger.info(f"User {user_id} deleted by {local.token.subject!r}")


@router.get("/users/{user_id}/orders", tags=["Users", "Orders"], response_model=schemas.Page)
@versioning.versions(minimal=1)
async def search_for_orders_of_user(
        user_id: pydantic.NonNegativeInt,
        query: shaping.ShapingQuery = Depends(get_shaping_query),
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Return one page of the orders of the user identified by its ID

    A `404` error response will be returned if the user is unknown.
    """

    helpers.return_one(user_id, local.store.get_user, "User")
    page = helpers.shape_collection(
        local.store.list_orders(user_id),
        schemas.Order,
        helpers.order_links(local, f"{local.api_prefix}/users/{user_id}/orders"),
        query,
        local
    )
    etag = ETag(local.request, local.config.caching.etags)
    etag.compare(page)
    etag.add_header(local.response, page)
    return page
