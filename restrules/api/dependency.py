"""
restrules API dependency library
"""

import logging
from typing import Callable, NamedTuple, Optional

from fastapi import Depends, Request, Response
from fastapi.security import OAuth2PasswordBearer
from jose import jwt

from . import base
from .. import err, shaping
from ..persistence.store import Store
from ..ratelimit import RateLimiter
from ..settings import Settings


logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="login", auto_error=False)


class TokenInfo(NamedTuple):
    token: str
    subject: str
    role: str
    expiration: int


def get_settings(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        raise base.InternalServerException("Settings are not available", "app.state.settings is unset")
    return settings


def decode_token(token: str, settings: Settings) -> TokenInfo:
    """
    Verify the signature and the mandatory claims of the bearer token

    :raises JWTError: when the token is invalid, expired or forged
    :raises KeyError: when a required claim is missing
    :raises ValueError: when a claim can't be converted
    """

    payload = jwt.decode(
        token,
        settings.auth.secret_key or base.runtime_key,
        algorithms=[jwt.ALGORITHMS.HS256],
        options={"require_exp": True, "require_iat": True, "require_sub": True}
    )
    return TokenInfo(token, payload["sub"], payload.get("role", ""), int(payload["exp"]))


def apply_rate_limit(request: Request, response: Response) -> None:
    """
    Count the request against the rate limit of its client and set the rate limit headers

    The client is identified by the subject of its bearer token, if the
    token has a valid signature, or by its network address otherwise.
    """

    limiter: Optional[RateLimiter] = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        return

    key = None
    authorization = request.headers.get("Authorization", "")
    if authorization.lower().startswith("bearer "):
        try:
            key = "sub:" + str(decode_token(authorization[7:].strip(), get_settings(request)).subject)
        except (jwt.JWTError, KeyError, ValueError):
            key = None
    if key is None:
        key = "addr:" + (request.client.host if request.client else "unknown")

    state = limiter.hit(key)
    if not state.allowed:
        logger.info(f"Rate limit exceeded by client {key!r}")
        raise base.RateLimitExceeded(state.headers, f"client={key!r}, limit={state.limit}")
    for name, value in state.headers.items():
        response.headers[name] = value


async def check_auth_token(
        request: Request,
        token: Optional[str] = Depends(oauth2_scheme)
) -> TokenInfo:
    if not token:
        raise base.Unauthorized("Authentication required", "no bearer token supplied")

    try:
        return decode_token(token, get_settings(request))
    except (jwt.JWTError, KeyError, ValueError) as exc:
        raise base.Unauthorized("Failed to validate token successfully", type(exc).__name__) from exc


def require_role(role: str) -> Callable[..., TokenInfo]:
    """
    Create a dependency rejecting clients authenticated without the given role
    """

    async def check_role(token: TokenInfo = Depends(check_auth_token)) -> TokenInfo:
        if token.role != role:
            raise base.Forbidden(
                f"This operation requires the role {role!r}.",
                f"subject={token.subject!r}, role={token.role!r}"
            )
        return token

    return check_role


def get_shaping_query(request: Request) -> shaping.ShapingQuery:
    try:
        return shaping.ShapingQuery.from_params(request.query_params.multi_items())
    except err.InvalidInput as exc:
        raise base.BadRequest(exc.message, exc.details) from exc


class MinimalRequestData:
    """
    Collection of minimal dependencies used only for internal functionalities
    """

    def __init__(
            self,
            request: Request,
            response: Response,
            _: None = Depends(apply_rate_limit)
    ):
        self.request = request
        self.response = response
        self.headers = request.headers
        self.config: Settings = get_settings(request)
        self.api_prefix: str = getattr(request.app.state, "api_prefix", "")
        self.api_version: int = getattr(request.app.state, "api_version", 0)

        if request.method in ("GET", "HEAD"):
            response.headers["Cache-Control"] = f"private, max-age={self.config.caching.max_age}"
        else:
            response.headers["Cache-Control"] = "no-store"


class LocalRequestData(MinimalRequestData):
    """
    Collection of core dependencies used by all authenticated path operations

    This class stores references to various important objects that
    will almost certainly be used by request handlers (path operations).
    Note that any dependency added here will be added to the OpenAPI
    definition, if it refers to a Query, Header, Path or Cookie.
    """

    def __init__(
            self,
            request: Request,
            response: Response,
            _: None = Depends(apply_rate_limit),
            token: TokenInfo = Depends(check_auth_token)
    ):
        super().__init__(request, response, _)
        self.token = token
        self.store: Store = request.app.state.store
