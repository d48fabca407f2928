"""
Combined restrules REST API definitions

This API enforces the REST conventions of its resources: all paths follow
the resource naming rules, every outcome maps to a fixed HTTP status code
and every failure is answered with the same structured error payload.
Multiple major versions of the API are served side by side; take a look
into the different API definitions to see which functionality they provide.
"""

import logging
from typing import Any, Callable, Dict, Optional, Type, Union

import fastapi
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import base, versioning
from .routers import router
from .. import err, schemas, status, __version__
from ..misc.logger import configure_logging as _configure_logging
from ..persistence.store import Store
from ..ratelimit import RateLimiter
from ..routes import RouteRegistry
from ..settings import Settings


DEFAULT_EXCEPTION_HANDLERS = {
    StarletteHTTPException: base.APIException.handle,
    RequestValidationError: base.handle_request_validation_error,
    err.OutcomeError: base.handle_outcome_error,
    Exception: base.handle_generic_exception
}

LICENSE_INFO = {
    "name": "MIT License",
    "url": "https://opensource.org/licenses/MIT"
}

ERROR_RESPONSES = {
    400: {"model": schemas.ErrorPayload},
    401: {"model": schemas.ErrorPayload},
    404: {"model": schemas.ErrorPayload},
    429: {"model": schemas.ErrorPayload}
}


API_V1_DOC = """restrules REST API definition version 1

Most endpoints require authentication using JSON web tokens. Logging in with
client name and password (see `POST /login`) yields a token that should be
included in the `Authorization` header with the type `Bearer`. Modifying
operations additionally require a token carrying the role `admin`.

Every error response uses the `ErrorPayload` schema. Its `code` field is a
stable identifier of the failure condition, prefixed with the status code:

1. `400_INVALID_INPUT` (Bad Request) for malformed bodies, path or query values,
   unknown filter or sort fields and page numbers or limits below `1`.
2. `401_UNAUTHORIZED` (Unauthorized) for missing, expired or otherwise invalid
   tokens. Use `POST /login` again to gather a fresh API token.
3. `403_FORBIDDEN` (Forbidden) when the token's role doesn't permit the operation.
4. `404_NOT_FOUND` (Not Found) for unknown resources or model IDs.
5. `404_UNSUPPORTED_VERSION` (Not Found) for unknown major API versions.
6. `405_METHOD_NOT_ALLOWED` (Method Not Allowed) for unsupported methods.
7. `409_CONFLICT` (Conflict) when a request clashes with the current state.
8. `412_PRECONDITION_FAILED` (Precondition Failed) when the `If-Match` header
   doesn't contain the current entity tag of the modified resource.
9. `429_RATE_LIMITED` (Too Many Requests) when the client exceeded its rate
   limit. The `Retry-After` header tells when to try again.
10. `500_SERVER_FAILURE` (Internal Server Error) on unexpected server failures.

Collections are returned as pages. Use `page` and `limit` for pagination,
`sort` with a comma-separated list of fields (prefix `-` for descending order)
and any other field name of the representation as filter. All representations
carry hypermedia links in their `_links` field.
"""

API_V2_DOC = API_V1_DOC.replace("version 1", "version 2", 1) + """
Version 2 adds the optional `display_name` field to the user representation.
"""


def _make_app(
        title: str,
        version: str,
        description: str,
        license_info: Optional[Dict[str, str]] = None,
        exception_handlers: Optional[Dict[Any, Callable]] = None,
        root_redirect: bool = True,
        responses: Optional[Dict[Union[int, str], Dict[str, Any]]] = None,
        api_class: Optional[Type[fastapi.FastAPI]] = None,
        **kwargs
) -> fastapi.FastAPI:
    if api_class is None:
        api_class = fastapi.FastAPI
    app = api_class(
        title=title,
        version=version,
        description=description,
        license_info=license_info or LICENSE_INFO,
        docs_url="/docs",
        redoc_url="/redoc",
        responses=responses or {400: {"model": schemas.ErrorPayload}},
        **kwargs
    )

    handlers = exception_handlers or DEFAULT_EXCEPTION_HANDLERS
    for exc in handlers:
        app.add_exception_handler(exc, handlers[exc])

    if root_redirect:
        @app.get("/", include_in_schema=False)
        async def redirect_root():
            return fastapi.responses.RedirectResponse("./docs")

    return app


def create_app(
        settings: Optional[Settings] = None,
        configure_logging: bool = True
) -> fastapi.FastAPI:
    """
    Create a new ``FastAPI`` instance using the specified settings and switches

    This function is conveniently used to allow overwriting the settings
    before launching the application as well as to allow multiple ``FastAPI``
    instances in one program, which in turn makes unit testing much easier.
    Every instance has its own status table, rate limiter and resource store.

    :param settings: optional Settings instance (would be created if not present)
    :param configure_logging: switch whether to configure logging
    :return: new ``FastAPI`` instance
    :raises ConfigurationError: when a route violates the naming conventions
        or the status table is incomplete
    """

    if settings is None:
        settings = Settings()

    if configure_logging:
        _configure_logging(settings.logging)
    logger = logging.getLogger(__name__)
    logger.debug("Starting application...")

    status_mapper = status.StatusMapper()
    rate_limiter = None
    if settings.rate_limit.enabled:
        rate_limiter = RateLimiter(settings.rate_limit.requests, settings.rate_limit.window)
    store = Store()
    if settings.general.seed_sample_data:
        store.seed()

    apis = {
        1: _make_app(
            title="restrules REST API v1",
            version="1.0",
            description=API_V1_DOC,
            api_class=base.APIWithoutValidationError,
            responses=ERROR_RESPONSES
        ),
        2: _make_app(
            title="restrules REST API v2",
            version="2.0",
            description=API_V2_DOC,
            api_class=base.APIWithoutValidationError,
            responses=ERROR_RESPONSES
        )
    }

    app = _make_app(
        title="restrules REST API",
        version=__version__,
        description=__doc__,
        apis=apis,
        vendor=settings.general.vendor,
        registry=RouteRegistry(settings.naming, logger),
        logger=logger,
        responses={404: {"model": schemas.ErrorPayload}},
        api_class=versioning.VersionedFastAPI
    )

    assert isinstance(app, versioning.VersionedFastAPI), "'VersionedFastAPI' instance required"
    app.add_router(router)

    for api_version, sub_app in [(None, app)] + list(apis.items()):
        sub_app.state.settings = settings
        sub_app.state.status_mapper = status_mapper
        sub_app.state.rate_limiter = rate_limiter
        sub_app.state.store = store
        sub_app.state.api_version = api_version or 0
        sub_app.state.api_prefix = "/v{}".format(api_version) if api_version else ""

    app.finish()
    logger.info(f"API versions {app.version_router.majors} serving {len(app.registry)} validated routes")
    return app


class APIWrapper:
    """
    Wrapper class around the FastAPI main object, accessible via the ``app`` property

    There should be only one global instance of this object, which should only
    export its functionality to hold the ``app`` property. This wrapper can be
    used to allow easy command-line usage via ``uvicorn`` calls. Example:

    .. code-block::

        uvicorn restrules.api:api.app
    """

    def __init__(self):
        self._app: Optional[fastapi.FastAPI] = None

    @property
    def app(self) -> fastapi.FastAPI:
        """
        Return the ``app`` instance (or create it with default settings if it doesn't exist)
        """

        if self._app is not None:
            return self._app
        self._app = create_app()
        return self._app


api = APIWrapper()
