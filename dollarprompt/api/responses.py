"""
Maps service results onto HTTP responses.
Services never raise for expected refusals; routes turn them into status codes here.
"""

from fastapi import HTTPException

from ..models import AdminResult, ClaimResult

CLAIM_STATUS = {
    "invalid": 400,
    "sign_in_required": 401,
    "not_enough_credits": 402,
    "already_claimed": 409,
    "in_progress": 409,
    "gateway": 502,
    "ad_unavailable": 503,
}


def claim_or_raise(result: ClaimResult) -> ClaimResult:
    if not result.success:
        raise HTTPException(status_code=CLAIM_STATUS.get(result.code, 400), detail=result.message)
    return result


def admin_or_raise(result: AdminResult) -> AdminResult:
    if not result.success:
        raise HTTPException(status_code=400, detail=result.message)
    return result
