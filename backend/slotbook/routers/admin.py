# backend/slotbook/routers/admin.py

import logging

from fastapi import APIRouter, Depends, HTTPException

from ..context import AppContext, get_context

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cache", tags=["admin"])


@router.post("/invalidate")
def invalidate_cache(
    namespace: str | None = None,
    ctx: AppContext = Depends(get_context),
):
    """Manually invalidate one cache namespace, or all (admin endpoint)."""
    namespaces = ctx.cache.namespaces
    if namespace is None:
        deleted = ctx.cache.invalidate_all()
    elif namespace in namespaces:
        deleted = {namespace: namespaces[namespace].invalidate()}
    else:
        raise HTTPException(status_code=400, detail=f"Unknown namespace: {namespace}")

    logger.info(f"Cache invalidated: {deleted}")
    return {"deleted_keys": deleted}
