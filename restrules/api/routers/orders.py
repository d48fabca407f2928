"""
restrules router module for /orders requests
"""

from typing import Any, Dict

import pydantic
from fastapi import Depends

from ._router import router
from ..dependency import LocalRequestData, get_shaping_query
from ..etag import ETag
from .. import helpers, versioning
from ... import schemas, shaping


@router.get("/orders", tags=["Orders"], response_model=schemas.Page)
@versioning.versions(minimal=1)
async def search_for_orders(
        query: shaping.ShapingQuery = Depends(get_shaping_query),
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Return one page of all orders that fulfill *all* filters given as query parameters

    Use e.g. `?status=shipped&sort=-quantity` to get the shipped orders
    with the largest quantities first.
    """

    page = helpers.shape_collection(
        local.store.list_orders(),
        schemas.Order,
        helpers.order_links(local),
        query,
        local
    )
    etag = ETag(local.request, local.config.caching.etags)
    etag.compare(page)
    etag.add_header(local.response, page)
    return page


@router.get("/orders/{order_id}", tags=["Orders"], response_model=Dict[str, Any])
@versioning.versions(minimal=1)
async def get_order_by_id(
        order_id: pydantic.NonNegativeInt,
        local: LocalRequestData = Depends(LocalRequestData)
):
    """
    Return the representation of the order identified by its ID

    A `404` error response will be returned if the order is unknown.
    """

    order = helpers.return_one(order_id, local.store.get_order, "Order")
    representation = helpers.represent(order, schemas.Order, helpers.order_links(local))
    etag = ETag(local.request, local.config.caching.etags)
    etag.compare(representation)
    etag.add_header(local.response, representation)
    return representation
