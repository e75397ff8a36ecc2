import json
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..models.models import PermitAudit, utcnow


def _serialize(data: Any) -> Optional[str]:
    if data is None or isinstance(data, str):
        return data
    try:
        return json.dumps(data, default=str)
    except TypeError:
        return str(data)


def record_permit_audit(
    db_session: Session,
    permit_id: int,
    action: str,
    actor_id: Optional[int] = None,
    note: Any = None,
) -> PermitAudit:
    entry = PermitAudit(
        permit_id=permit_id,
        action=action,
        actor_id=actor_id,
        note=_serialize(note),
        created_at=utcnow(),
    )
    db_session.add(entry)
    db_session.commit()
    return entry
