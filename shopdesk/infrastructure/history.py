from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from sqlalchemy.orm import Session

from shopdesk.domain.models import History


@dataclass(frozen=True)
class Actor:
    """Who triggered a change, as supplied by the authentication layer."""

    user_id: Optional[str] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None


def get_actor(request: Request) -> Actor:
    return Actor(
        user_id=request.headers.get("X-User-Id"),
        ip=request.headers.get("X-Forwarded-For") or (request.client.host if request.client else None),
        user_agent=request.headers.get("User-Agent"),
    )


def record_history(
    db: Session,
    actor: Optional[Actor],
    action: str,
    resource: str,
    resource_id: Optional[int],
    description: str,
    commit: bool = True,
) -> History:
    """Append an audit entry."""
    actor = actor or Actor()
    entry = History(
        user_id=actor.user_id,
        action=action,
        resource=resource,
        resource_id=resource_id,
        description=description,
        ip=actor.ip,
        user_agent=actor.user_agent,
    )
    db.add(entry)
    if commit:
        db.commit()
    return entry
