"""Lightweight helper for recording activity log entries.

Usage:
    await log_activity(
        db, user, action="finalized", entity_type="bill",
        entity_id=bill.id, entity_code=bill.bill_number,
        summary="Finalized VR/2025-26/04 for Ramesh Textiles",
    )

The row is added to the current session and committed with the
enclosing transaction; no extra flush is performed.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.deps import CurrentUser
from app.models.tenant.activity_log import ActivityLog


async def log_activity(
    db: AsyncSession,
    user: CurrentUser,
    *,
    action: str,
    entity_type: str,
    entity_id: str | None = None,
    entity_code: str | None = None,
    summary: str | None = None,
    details: dict | None = None,
) -> None:
    """Append an activity log entry to the current DB session."""
    entry = ActivityLog(
        organization_id=user.organization_id,
        user_id=user.id,
        user_name=user.display_name,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        entity_code=entity_code,
        summary=summary,
        details=details,
    )
    db.add(entry)
