"""
restrules router module for authentication
"""

import logging

from fastapi import Depends
from fastapi.security import OAuth2PasswordRequestForm

from ._router import router
from ..dependency import MinimalRequestData
from .. import auth, versioning
from ... import schemas


logger = logging.getLogger(__name__)


@router.post("/login", tags=["Authentication"], response_model=schemas.Token)
@versioning.versions(minimal=1)
async def login(
        data: OAuth2PasswordRequestForm = Depends(),
        local: MinimalRequestData = Depends(MinimalRequestData)
):
    """
    Login using client name and password via the OAuth Password Flow

    Note that this endpoint is the only API endpoint that uses
    URL-encoded form data instead of JSON bodies, since this is
    enforced by the OAuth standard for the Password Flow. The
    returned bearer token carries the role of the client.

    See RFC 6749, section 1.3.3, for more details.
    """

    logger.debug(f"Login request using username {data.username!r}...")
    client = auth.check_client_credentials(data.username, data.password, local.config)
    return {
        "access_token": auth.create_access_token(
            client.name,
            client.role,
            local.config.auth.secret_key,
            local.config.auth.token_expiration_minutes
        ),
        "token_type": "bearer"
    }
