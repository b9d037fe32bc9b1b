"""Helpers shared by the enrollment, payment and repair services."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from app.core.models import AuditLog
from app.db.store import RecordStore


def to_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    return val if isinstance(val, Decimal) else Decimal(str(val))


def as_utc(val: Optional[datetime]) -> datetime:
    """Comparable timestamp: naive values are stored UTC."""
    if val is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    if val.tzinfo is None:
        return val.replace(tzinfo=timezone.utc)
    return val


async def log_audit(
    store: RecordStore,
    entity_type: str,
    entity_id: Optional[str],
    action: str,
    *,
    from_status: Optional[str] = None,
    to_status: Optional[str] = None,
    performed_by: Optional[str] = None,
    remarks: Optional[str] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> None:
    """Append one audit log entry. Caller must commit."""
    await store.insert(
        AuditLog(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            from_status=from_status,
            to_status=to_status,
            performed_by=performed_by,
            remarks=remarks,
            payload=payload,
            timestamp=datetime.utcnow(),
        )
    )
