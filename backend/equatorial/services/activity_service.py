# Overview: Service-layer operations for the admin activity log; append-only.

"""
Activity Log Invariants

- Append-only: no updates or deletes of existing rows.
- No domain logic here; callers describe what happened.
- Rows are written inside the caller's DB transaction (flush, never commit).
"""

from __future__ import annotations

import json
from typing import Any

from ..extensions import db
from ..models import ActivityLog


def log_activity(
    *,
    action: str,
    entity: str,
    description: str,
    entity_id: int | None = None,
    user_id: int | None = None,
    details: dict[str, Any] | None = None,
) -> ActivityLog:
    entry = ActivityLog(
        user_id=user_id,
        action=action,
        entity=entity,
        entity_id=entity_id,
        description=description,
        details=json.dumps(details, default=str, sort_keys=True) if details else None,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def list_activity(
    *,
    entity: str | None = None,
    entity_id: int | None = None,
    limit: int = 50,
) -> list[ActivityLog]:
    q = db.session.query(ActivityLog)
    if entity:
        q = q.filter(ActivityLog.entity == entity)
    if entity_id is not None:
        q = q.filter(ActivityLog.entity_id == entity_id)
    return q.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc()).limit(limit).all()
