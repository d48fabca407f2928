"""
restrules router module generic functionalities
"""

from typing import Dict

import pydantic
from fastapi import Depends

from ._router import router
from ..dependency import MinimalRequestData
from .. import versioning
from ... import naming, schemas


@router.get("/health", tags=["Generic"], response_model=Dict[str, str])
@versioning.versions(minimal=1)
async def verify_running_backend(_: MinimalRequestData = Depends(MinimalRequestData)):
    """
    Return 200 OK with an empty object as body to only verify that the service and the middlewares work
    """

    return {}


@router.get("/naming-reports", tags=["Generic"], response_model=schemas.NamingReport)
@versioning.versions(minimal=1)
async def check_path_naming(
        path: pydantic.constr(min_length=1, max_length=2048),
        local: MinimalRequestData = Depends(MinimalRequestData)
):
    """
    Validate the path template given as query parameter against the resource naming conventions

    The report lists every violated rule by its stable identifier (e.g.
    `verb-in-path` or `missing-pluralization`) together with the affected
    segment and a human-readable message. A report without violations is valid.
    """

    report = naming.validate_path(path, local.config.naming)
    return schemas.NamingReport(
        path=report.path,
        valid=report.valid,
        violations=[
            schemas.Violation(rule=v.rule.value, segment=v.segment, message=v.message)
            for v in report.violations
        ]
    )
