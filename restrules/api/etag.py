"""
ETag helper library for the core REST API
"""

import hashlib
import logging
from typing import Any, List, Optional

try:
    import ujson as json
except ImportError:
    import json

import pydantic
from fastapi import Request, Response
from fastapi.encoders import jsonable_encoder

from . import base


logger = logging.getLogger(__name__)


def _parse_tags(header: str) -> List[str]:
    tags = []
    for tag in map(str.strip, header.split(",")):
        if tag.startswith("W/"):
            tag = tag[2:]
        tags.append(tag.strip('"'))
    return [t for t in tags if t]


class ETag:
    """
    Helper class providing methods to create and compare ETags and related headers

    For safe requests, a matching ``If-None-Match`` header means that the
    user agent's cached representation is still valid (``304 Not Modified``).
    For modifying requests, a non-matching ``If-Match`` header means that
    the resource has been changed in the meantime (``412 Precondition Failed``).
    """

    def __init__(self, request: Request, enabled: bool = True):
        self.request = request
        self.enabled = enabled

        for field in ["If-Modified-Since", "If-Unmodified-Since", "If-Range"]:
            if request.headers.get(field):
                logger.debug(f"'{field}' header not supported, ignoring value {request.headers.get(field)!r}")

    def add_header(self, response: Response, model: Any) -> Optional[str]:
        """
        Add the ETag header field of the model to the response

        :param response: Response object of the handled request
        :param model: generated model of the completely finished request
        :return: the ETag that has been set on the response, if any
        """

        if not self.enabled:
            return None
        tag = self.make_etag(model)
        if tag is not None:
            response.headers["ETag"] = f'"{tag}"'
        return tag

    def compare(self, current_model: Any) -> bool:
        """
        Calculate and compare the ETag of the given model with the known client ETags

        :param current_model: any model or JSON-serializable representation
        :return: ``True`` if the request may be processed further
        :raises NotModified: if the user agent already has the most recent version of a resource
        :raises PreconditionFailed: if the ``If-Match`` precondition was not met
        """

        if not self.enabled:
            return True
        model_tag = self.make_etag(current_model)

        none_match = self.request.headers.get("If-None-Match")
        if none_match and self.request.method in ("GET", "HEAD"):
            if none_match.strip() == "*" or model_tag in _parse_tags(none_match):
                raise base.NotModified(f'"{model_tag}"')

        match = self.request.headers.get("If-Match")
        if match and match.strip() != "*":
            tags = [t for t in map(str.strip, match.split(",")) if not t.startswith("W/")]
            if model_tag not in _parse_tags(",".join(tags)):
                raise base.PreconditionFailed(
                    self.request.url.path,
                    f"Conditional request not matching current entity tag: {model_tag}"
                )
        return True

    @staticmethod
    def make_etag(obj: Any) -> Optional[str]:
        """
        Create a static and unambiguous ETag value based on a given object

        :param obj: any model or object that can be JSON-serialized
        :return: optional ETag value as a string
        """

        if obj is None:
            return None
        if isinstance(obj, pydantic.BaseModel):
            representation = jsonable_encoder(obj, by_alias=True)
        else:
            representation = jsonable_encoder(obj)
        dump = json.dumps(representation, sort_keys=True)
        return hashlib.sha256((type(obj).__name__ + dump).encode("UTF-8")).hexdigest()[:32]
