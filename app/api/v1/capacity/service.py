"""
Capacity tracker: derives a batch's occupied seats from enrollments (and invoices as a fallback signal).

occupied = max(seat-holding enrollments, distinct invoiced students). Never a sum: an invoice and its
eventual enrollment are the same seat.
"""

import logging
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import SEAT_HOLDING_STATUSES, InvoiceStatus
from app.core.exceptions import NotFound
from app.core.models import Batch, Enrollment, Invoice
from app.db.store import RecordStore, equals, exists, in_set, run_with_retry

from .schemas import BatchCapacity, BatchCapacityCheck

logger = logging.getLogger(__name__)


async def measure(db: AsyncSession, batch_id: str) -> int:
    """Fresh occupied-seat count. Pure read."""
    store = RecordStore(db)
    enrolled = await store.count(
        Enrollment,
        equals(Enrollment.batch_id, batch_id),
        in_set(Enrollment.status, SEAT_HOLDING_STATUSES),
    )
    invoiced = await store.count(
        Invoice,
        equals(Invoice.batch_id, batch_id),
        exists(Invoice.student_id),
        Invoice.status != InvoiceStatus.cancelled.value,
        distinct=Invoice.student_id,
    )
    return max(enrolled, invoiced)


async def recompute(db: AsyncSession, batch_id: str) -> BatchCapacity:
    """Measure and write occupied_seats back onto the batch. Caller commits."""
    store = RecordStore(db)
    batch = await store.get(Batch, batch_id)
    if not batch:
        raise NotFound("Batch not found")
    occupied = await measure(db, batch_id)
    previous = batch.occupied_seats or 0
    if previous != occupied:
        await store.update(batch, occupied_seats=occupied)
    logger.info("capacity_recomputed batch_id=%s previous=%d occupied=%d max=%d", batch_id, previous, occupied, batch.max_seats)
    if occupied > batch.max_seats:
        logger.warning("capacity_overcommitted batch_id=%s occupied=%d max=%d", batch_id, occupied, batch.max_seats)
    return BatchCapacity(
        batch_id=batch.id,
        max_seats=batch.max_seats,
        occupied_seats=occupied,
        previous_occupied_seats=previous,
        available_seats=max(0, batch.max_seats - occupied),
        overcommitted=occupied > batch.max_seats,
    )


async def recompute_batch_capacity(db: AsyncSession, batch_id: str) -> BatchCapacity:
    """Standalone repair of one batch."""
    return await run_with_retry(db, lambda: recompute(db, batch_id), label="recompute_batch_capacity")


async def recompute_all(db: AsyncSession) -> List[BatchCapacity]:
    async def _work() -> List[BatchCapacity]:
        batches = await RecordStore(db).find(Batch, order_by=Batch.created_at)
        return [await recompute(db, b.id) for b in batches]

    return await run_with_retry(db, _work, label="recompute_all")


async def check_capacity(db: AsyncSession, batch_id: str) -> BatchCapacityCheck:
    batch = await RecordStore(db).get(Batch, batch_id)
    if not batch:
        raise NotFound("Batch not found")
    measured = await measure(db, batch_id)
    return BatchCapacityCheck(
        batch_id=batch.id,
        max_seats=batch.max_seats,
        cached_occupied_seats=batch.occupied_seats or 0,
        measured_occupied_seats=measured,
        in_sync=(batch.occupied_seats or 0) == measured,
    )
