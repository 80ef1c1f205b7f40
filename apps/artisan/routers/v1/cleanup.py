import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException

from ...deps import get_scheduler
from ...errors import ConfigurationError, ListFailure
from ...security.auth import require_cleanup_operator
from ...services.retention import RetentionPolicy
from ...services.scheduler import SweepScheduler

logger = logging.getLogger(__name__)

router = APIRouter()


def _override_policy(base: RetentionPolicy, payload: Optional[dict]) -> RetentionPolicy:
    payload = payload or {}
    keep_days = payload.get("keepDays")
    prefix = payload.get("prefix")
    if keep_days is None and prefix is None:
        return base
    if prefix is not None and not (
        isinstance(prefix, str) and prefix.startswith(base.namespace_prefix)
    ):
        raise ConfigurationError(
            f"prefix must be within {base.namespace_prefix!r}, got {prefix!r}"
        )
    if keep_days is None:
        return RetentionPolicy(namespace_prefix=prefix, keep_duration=base.keep_duration)
    return RetentionPolicy.from_days(prefix if prefix is not None else base.namespace_prefix, keep_days)


@router.post("/trigger-cleanup")
def trigger_cleanup(
    payload: Optional[dict] = Body(None),
    scheduler: SweepScheduler = Depends(get_scheduler),
    user=Depends(require_cleanup_operator),
):
    try:
        policy = _override_policy(scheduler.policy, payload)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info(
        "Manual cleanup requested by uid=%s prefix=%s keep=%s",
        user.get("uid"),
        policy.namespace_prefix,
        policy.keep_duration,
    )
    try:
        result = scheduler.run_now(policy)
    except ListFailure as e:
        raise HTTPException(status_code=503, detail=str(e))
    return {"success": True, **result.to_dict()}
