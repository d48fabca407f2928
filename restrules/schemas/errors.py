"""
restrules error schemas
"""

from typing import Optional

import pydantic


class ErrorPayload(pydantic.BaseModel):
    """
    ErrorPayload: shared model for all types of API failures

    Whenever some kind of problem occurs during request handling and some
    exception handler took over, the answer will be this model, including
    `500` (Internal Server Error) responses of unexpected failures.

    The field `code` is a stable machine-readable identifier of the failure
    condition prefixed with the HTTP status code, e.g. `400_INVALID_INPUT`.
    Clients should branch on this field instead of parsing the message.
    The field `message` contains a short human-readable informational message
    about the problem, which might be shown to end users in an adequate form.
    The optional field `details` contains a string of arbitrary length with
    details about the problem source and should primarily be used for debugging.
    """

    code: pydantic.constr(min_length=1, max_length=64)
    message: str
    details: Optional[str] = None
