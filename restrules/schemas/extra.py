"""
restrules extra schemas

This module contains the schemas for version listings,
naming reports and paginated collection pages.
"""

from typing import Any, Dict, List

import pydantic


class Versions(pydantic.BaseModel):
    class Version(pydantic.BaseModel):
        version: pydantic.PositiveInt
        prefix: pydantic.constr(min_length=2)
        full: str

    latest: pydantic.PositiveInt
    versions: List[Version]


class Violation(pydantic.BaseModel):
    rule: str
    segment: str
    message: str


class NamingReport(pydantic.BaseModel):
    path: str
    valid: bool
    violations: List[Violation]


class Page(pydantic.BaseModel):
    """
    Page: one page of a filtered, sorted and paginated collection

    Every element of `items` carries its own `_links` object with at least
    the `self` relation. The page-level `_links` object always contains the
    relations `self`, `first` and `last`, while `next` and `prev` are only
    present if such a page exists. Pages are counted starting at 1.
    """

    model_config = pydantic.ConfigDict(populate_by_name=True)

    items: List[Dict[str, Any]]
    page: pydantic.PositiveInt
    limit: pydantic.PositiveInt
    total: pydantic.NonNegativeInt
    pages: pydantic.PositiveInt
    links: Dict[str, str] = pydantic.Field(alias="_links")
