"""Batch capacity router: inspect and repair occupied-seat counts."""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import require_roles
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import BatchCapacity, BatchCapacityCheck
from . import service

router = APIRouter(prefix="/api/v1/batches", tags=["capacity"])


@router.post(
    "/recompute",
    response_model=List[BatchCapacity],
    dependencies=[Depends(require_roles())],
)
async def recompute_all_batches(
    db: AsyncSession = Depends(get_db),
) -> List[BatchCapacity]:
    try:
        return await service.recompute_all(db)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post(
    "/{batch_id}/recompute",
    response_model=BatchCapacity,
    dependencies=[Depends(require_roles("mentor"))],
)
async def recompute_batch_capacity(
    batch_id: str,
    db: AsyncSession = Depends(get_db),
) -> BatchCapacity:
    try:
        return await service.recompute_batch_capacity(db, batch_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.get(
    "/{batch_id}/capacity",
    response_model=BatchCapacityCheck,
    dependencies=[Depends(require_roles("mentor"))],
)
async def get_batch_capacity(
    batch_id: str,
    db: AsyncSession = Depends(get_db),
) -> BatchCapacityCheck:
    try:
        return await service.check_capacity(db, batch_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())
