from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from app.core.auth import resolve_identity
from app.core.rate_limit import rate_limit
from app.core.rate_limit_keys import get_request_identity
from app.core.rate_limit_policies import RateLimitCategory
from app.schemas.rate_limit import CallerInfo

router = APIRouter(tags=["Account"])

_general_limit = rate_limit(RateLimitCategory.GENERAL, role_based=True)


@router.get(
    "/me",
    response_model=CallerInfo,
    dependencies=[Depends(resolve_identity), Depends(_general_limit)],
)
async def who_am_i(request: Request) -> CallerInfo:
    """Return the resolved caller and the key it is throttled under.

    Anonymous callers are reported with ``identity: null`` and an ``ip:``
    key derived from the forwarding headers.
    """

    return CallerInfo(
        identity=get_request_identity(request),
        throttle_key=_general_limit.build_key(request),
    )
