"""
Generic helper library for the core REST API
"""

from typing import Any, Callable, Collection, Dict, Iterable, Optional, Type, TypeVar

import pydantic
from fastapi.encoders import jsonable_encoder

from .base import BadRequest, NotFound
from .dependency import MinimalRequestData
from .. import err, schemas, shaping


ModelType = TypeVar("ModelType", bound=pydantic.BaseModel)

USER_RELATIONS = {"orders": "{self}/orders"}
ORDER_RELATIONS = {"user": "{prefix}/users/{user_id}"}


def return_one(object_id: int, getter: Callable[[int], Optional[ModelType]], name: str) -> ModelType:
    """
    Return the object identified by its ID using the getter function

    :param object_id: internal ID of the object
    :param getter: function returning the object or None if it's unknown
    :param name: name of the resource type used in the error message
    :return: resulting object
    :raises NotFound: when the specified object ID returned no result
    """

    obj = getter(object_id)
    if obj is None:
        raise NotFound(f"{name} with ID {object_id!r}")
    return obj


def user_schema(local: MinimalRequestData) -> Type[schemas.UserV1]:
    if local.api_version >= 2:
        return schemas.User
    return schemas.UserV1


def user_links(local: MinimalRequestData) -> shaping.LinkBuilder:
    return shaping.LinkBuilder(local.api_prefix + "/users", relations=USER_RELATIONS)


def order_links(local: MinimalRequestData, collection_path: Optional[str] = None) -> shaping.LinkBuilder:
    relations = {rel: template.replace("{prefix}", local.api_prefix) for rel, template in ORDER_RELATIONS.items()}
    canonical = local.api_prefix + "/orders"
    return shaping.LinkBuilder(collection_path or canonical, relations=relations, item_base=canonical)


def represent(
        obj: pydantic.BaseModel,
        schema: Type[pydantic.BaseModel],
        links: shaping.LinkBuilder
) -> Dict[str, Any]:
    """
    Convert the object to the given schema and attach its hypermedia links
    """

    base = jsonable_encoder(schema.model_validate(obj.model_dump()))
    return links.annotate(base)


def shape_collection(
        objects: Iterable[pydantic.BaseModel],
        schema: Type[pydantic.BaseModel],
        links: shaping.LinkBuilder,
        query: shaping.ShapingQuery,
        local: MinimalRequestData,
        fields: Optional[Collection[str]] = None
) -> schemas.Page:
    """
    Filter, sort and paginate the objects as representations of the given schema

    :param objects: all elements of the collection
    :param schema: schema of the representations (restricts the exposed fields)
    :param links: link builder of the collection
    :param query: parsed shaping query parameters of the request
    :param local: contextual local data
    :param fields: optional fields usable for filtering and sorting (all schema fields by default)
    :return: the requested page of the collection
    :raises BadRequest: when the query parameters can't be applied
    """

    items = [jsonable_encoder(schema.model_validate(obj.model_dump())) for obj in objects]
    try:
        return shaping.shape(
            items,
            query,
            links,
            fields=fields if fields is not None else schema.model_fields.keys(),
            conf=local.config.pagination
        )
    except err.InvalidInput as exc:
        raise BadRequest(exc.message, exc.details) from exc
