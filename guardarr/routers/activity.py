"""Activity feed routes."""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from guardarr.database import get_db
from guardarr.models.activity import ActivityAction
from guardarr.schemas.activity import ActivityOut
from guardarr.services.activity_service import list_activity

router = APIRouter()


@router.get("/", response_model=list[ActivityOut])
def get_activity(
    action: Optional[ActivityAction] = None,
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    """Newest entries first, optionally filtered by action."""
    return list_activity(db, limit=limit, action=action.value if action else None)
