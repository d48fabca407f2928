"""
Response shaper applying filtering, sorting, pagination and hypermedia links

Collections are shaped in a fixed order: filters first, then sorting and
finally pagination, so that page boundaries are always computed on the
filtered and sorted sequence. The page size is bounded by the configured
maximum to bound the response size; larger requested limits are clamped.
"""

import math
import urllib.parse
from typing import Any, Collection, Dict, Iterable, List, Mapping, NamedTuple, Optional, Tuple

from . import err
from .schemas import config, Page


class SortKey(NamedTuple):
    field: str
    descending: bool = False

    def __str__(self) -> str:
        return ("-" if self.descending else "") + self.field


class ShapingQuery(NamedTuple):
    """
    Parsed pagination, sorting and filtering query parameters
    """

    page: int = 1
    limit: Optional[int] = None
    sort: Tuple[SortKey, ...] = ()
    filters: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def from_params(cls, params: Iterable[Tuple[str, str]]) -> "ShapingQuery":
        """
        Build the query from (key, value) pairs, treating unreserved keys as filters

        :raises InvalidInput: when ``page`` or ``limit`` are no positive integers
        """

        page = 1
        limit = None
        sort = []
        filters = []
        for key, value in params:
            if key == "page":
                page = _positive_int(key, value)
            elif key == "limit":
                limit = _positive_int(key, value)
            elif key == "sort":
                sort.extend(parse_sort(value))
            else:
                filters.append((key, value))
        return cls(page=page, limit=limit, sort=tuple(sort), filters=tuple(filters))

    def to_params(self, page: Optional[int] = None, limit: Optional[int] = None) -> List[Tuple[str, str]]:
        params = list(self.filters)
        if self.sort:
            params.append(("sort", ",".join(map(str, self.sort))))
        if limit or self.limit:
            params.append(("limit", str(limit or self.limit)))
        params.append(("page", str(page or self.page)))
        return params


def _positive_int(key: str, value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise err.InvalidInput(f"Query parameter {key!r} must be an integer.", f"{key}={value!r}") from None
    if number < 1:
        raise err.InvalidInput(f"Query parameter {key!r} must be at least 1.", f"{key}={value!r}")
    return number


def parse_sort(value: str) -> List[SortKey]:
    """
    Parse a sort expression like ``name,-created`` (a leading minus sorts descending)
    """

    keys = []
    for part in value.split(","):
        part = part.strip()
        if not part:
            continue
        if part.startswith("-"):
            keys.append(SortKey(part[1:], True))
        elif part.startswith("+"):
            keys.append(SortKey(part[1:]))
        else:
            keys.append(SortKey(part))
    for key in keys:
        if not key.field:
            raise err.InvalidInput("Sort fields must not be empty.", f"sort={value!r}")
    return keys


class LinkBuilder:
    """
    Builder of hypermedia links for one collection resource

    The ``relations`` map relation names to path templates. The placeholder
    ``{self}`` is replaced by the item's own path and any other placeholder by
    the item's field of that name, e.g. ``{"orders": "{self}/orders"}`` yields
    ``/v1/users/1/orders`` for the user with ID 1 below ``/v1/users``.
    Item paths are built below ``item_base`` when a sub-collection lists
    elements whose canonical location is another collection.
    """

    def __init__(
            self,
            collection_path: str,
            id_field: str = "id",
            relations: Optional[Mapping[str, str]] = None,
            item_base: Optional[str] = None
    ):
        self.collection_path = collection_path.rstrip("/")
        self.item_base = (item_base or collection_path).rstrip("/")
        self.id_field = id_field
        self.relations = dict(relations or {})

    def item_path(self, item: Mapping[str, Any]) -> str:
        return f"{self.item_base}/{urllib.parse.quote(str(item[self.id_field]), safe='')}"

    def item_links(self, item: Mapping[str, Any]) -> Dict[str, str]:
        own = self.item_path(item)
        links = {"self": own}
        for rel, template in self.relations.items():
            links[rel] = template.format(**item, self=own)
        return links

    def annotate(self, item: Mapping[str, Any]) -> Dict[str, Any]:
        result = dict(item)
        result["_links"] = self.item_links(item)
        return result

    def page_link(self, query: ShapingQuery, page: int, limit: int) -> str:
        return f"{self.collection_path}?{urllib.parse.urlencode(query.to_params(page, limit))}"

    def page_links(self, query: ShapingQuery, page: int, pages: int, limit: int) -> Dict[str, str]:
        links = {
            "self": self.page_link(query, page, limit),
            "first": self.page_link(query, 1, limit),
            "last": self.page_link(query, pages, limit)
        }
        if page < pages:
            links["next"] = self.page_link(query, page + 1, limit)
        if page > 1:
            links["prev"] = self.page_link(query, min(page - 1, pages), limit)
        return links


def _matches(value: Any, expected: str) -> bool:
    if isinstance(value, bool):
        return expected.lower() in (("true", "1", "yes") if value else ("false", "0", "no"))
    if value is None:
        return expected.lower() in ("", "null", "none")
    return str(value) == expected


def _sort_key(field: str):
    def key(item: Mapping[str, Any]):
        value = item.get(field)
        return value is None, value
    return key


def clamp_limit(requested: Optional[int], conf: config.PaginationConfig) -> int:
    if requested is None:
        return conf.default_limit
    return max(1, min(requested, conf.max_limit))


def shape(
        items: Iterable[Mapping[str, Any]],
        query: ShapingQuery,
        links: LinkBuilder,
        fields: Optional[Collection[str]] = None,
        conf: Optional[config.PaginationConfig] = None
) -> Page:
    """
    Filter, sort and paginate the items and attach hypermedia links

    :param items: base representations of all elements of the collection
    :param query: parsed query parameters of the request
    :param links: link builder of the collection
    :param fields: optional set of field names that may be used for filtering
        and sorting (any field of the first item is accepted if omitted)
    :param conf: pagination configuration (defaults are used if omitted)
    :return: one page of the shaped collection
    :raises InvalidInput: when filtering or sorting by an undeclared field
    """

    if conf is None:
        conf = config.PaginationConfig()
    items = list(items)
    if fields is None:
        fields = set(items[0].keys()) if items else set()

    for name, _ in query.filters:
        if name not in fields:
            raise err.InvalidInput(f"Filtering by {name!r} is not supported.", f"fields={sorted(fields)}")
    for key in query.sort:
        if key.field not in fields:
            raise err.InvalidInput(f"Sorting by {key.field!r} is not supported.", f"fields={sorted(fields)}")

    filtered = [
        item for item in items
        if all(_matches(item.get(name), value) for name, value in query.filters)
    ]

    for key in reversed(query.sort):
        filtered.sort(key=_sort_key(key.field), reverse=key.descending)

    limit = clamp_limit(query.limit, conf)
    total = len(filtered)
    pages = max(1, math.ceil(total / limit))
    start = (query.page - 1) * limit
    selected = filtered[start:start + limit]

    return Page(
        items=[links.annotate(item) for item in selected],
        page=query.page,
        limit=limit,
        total=total,
        pages=pages,
        links=links.page_links(query, query.page, pages, limit)
    )
