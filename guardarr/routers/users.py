"""User API routes: sync hook, rule assignment and bypasses."""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from guardarr.database import get_db
from guardarr.dependencies import get_enforcer
from guardarr.models.activity import ActivityAction
from guardarr.models.bypass import TemporaryBypass
from guardarr.models.rule import Rule, UserRule
from guardarr.models.user import User
from guardarr.schemas.bypass import (
    ActiveBypassOut,
    BypassCancelResult,
    BypassCreate,
    BypassOut,
    BypassStatus,
)
from guardarr.schemas.enforcer import AssignmentResult, TickReportOut
from guardarr.schemas.rule import RuleOut
from guardarr.schemas.user import PurgeResult, RuleAssign, UserOut, UserSync
from guardarr.services import bypass_service
from guardarr.services.activity_service import record_activity
from guardarr.services.enforcer import Enforcer

logger = logging.getLogger(__name__)
router = APIRouter()


def _get_user_or_404(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.user_id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.post("/", response_model=UserOut)
def sync_user(payload: UserSync, db: Session = Depends(get_db)):
    """Create or update a user from the media server's account list (keyed by plex_id)."""
    user = db.query(User).filter(User.plex_id == payload.plex_id).first()
    created = user is None
    if created:
        user = User(**payload.model_dump())
        db.add(user)
    else:
        for field, value in payload.model_dump().items():
            setattr(user, field, value)
    db.commit()
    db.refresh(user)
    record_activity(
        db, ActivityAction.user_sync, user.plex_username,
        details="User added" if created else "User updated",
    )
    logger.info("Synced user %s (%s)", user.user_id, user.plex_username)
    return user


@router.get("/", response_model=list[UserOut])
def list_users(db: Session = Depends(get_db)):
    return db.query(User).order_by(User.plex_username).all()


@router.get("/bypasses", response_model=list[ActiveBypassOut])
def list_bypasses(db: Session = Depends(get_db), enforcer: Enforcer = Depends(get_enforcer)):
    """All bypasses that have not expired yet."""
    rows = (
        db.query(TemporaryBypass, User.plex_username)
        .join(User, User.user_id == TemporaryBypass.user_id)
        .filter(TemporaryBypass.expires_at > enforcer.now())
        .order_by(TemporaryBypass.expires_at)
        .all()
    )
    return [
        ActiveBypassOut(**BypassOut.model_validate(bypass).model_dump(), plex_username=username)
        for bypass, username in rows
    ]


@router.post("/purge-deactivated", response_model=PurgeResult)
def purge_deactivated(db: Session = Depends(get_db), enforcer: Enforcer = Depends(get_enforcer)):
    """Permanently delete deactivated users with their assignments and bypasses."""
    users = db.query(User).filter(User.deactivated == True).all()  # noqa: E712
    names = [u.plex_username for u in users]
    user_ids = [u.user_id for u in users]
    for user in users:
        db.query(UserRule).filter(UserRule.user_id == user.user_id).delete(synchronize_session=False)
        db.query(TemporaryBypass).filter(TemporaryBypass.user_id == user.user_id).delete(synchronize_session=False)
        db.delete(user)
    db.commit()
    for user_id in user_ids:
        enforcer.tracker.clear_user(user_id)
    if users:
        record_activity(
            db, ActivityAction.users_purge, "System",
            details=f"Purged {len(users)} deactivated users: {', '.join(names)}",
        )
    logger.info("Purged %d deactivated user(s)", len(users))
    return PurgeResult(deleted=len(users), users=names)


@router.get("/{user_id}", response_model=UserOut)
def get_user(user_id: str, db: Session = Depends(get_db)):
    return _get_user_or_404(db, user_id)


@router.get("/{user_id}/rules", response_model=list[RuleOut])
def list_user_rules(user_id: str, db: Session = Depends(get_db)):
    _get_user_or_404(db, user_id)
    return (
        db.query(Rule)
        .join(UserRule, UserRule.rule_id == Rule.rule_id)
        .filter(UserRule.user_id == user_id)
        .order_by(Rule.priority.desc(), Rule.name)
        .all()
    )


@router.post("/{user_id}/rules", response_model=AssignmentResult)
def assign_rule(
    user_id: str,
    payload: RuleAssign,
    db: Session = Depends(get_db),
    enforcer: Enforcer = Depends(get_enforcer),
):
    """Assign a rule and enforce it immediately if its window is open."""
    report = enforcer.assign_rule(db, user_id, payload.rule_id)
    applied = any(c.rule_id == payload.rule_id for c in report.applied)
    return AssignmentResult(applied=applied, removed=False, report=TickReportOut.from_report(report))


@router.delete("/{user_id}/rules/{rule_id}", response_model=AssignmentResult)
def unassign_rule(
    user_id: str,
    rule_id: str,
    db: Session = Depends(get_db),
    enforcer: Enforcer = Depends(get_enforcer),
):
    """Remove an assignment and lift its filter immediately if it was applied."""
    report = enforcer.unassign_rule(db, user_id, rule_id)
    removed = any(c.rule_id == rule_id for c in report.lifted)
    return AssignmentResult(applied=False, removed=removed, report=TickReportOut.from_report(report))


@router.get("/{user_id}/bypass", response_model=BypassStatus)
def get_bypass(user_id: str, db: Session = Depends(get_db), enforcer: Enforcer = Depends(get_enforcer)):
    bypass = bypass_service.get_active(db, user_id, enforcer.now())
    if not bypass:
        return BypassStatus(active=False)
    return BypassStatus(active=True, bypass=BypassOut.model_validate(bypass))


@router.post("/{user_id}/bypass", response_model=BypassOut, status_code=status.HTTP_201_CREATED)
def grant_bypass(
    user_id: str,
    payload: BypassCreate,
    db: Session = Depends(get_db),
    enforcer: Enforcer = Depends(get_enforcer),
):
    """Suspend enforcement for 15, 30, 60, 120 or 240 minutes."""
    return enforcer.grant_bypass(db, user_id, payload.minutes, created_by=payload.created_by)


@router.delete("/{user_id}/bypass", response_model=BypassCancelResult)
def cancel_bypass(user_id: str, db: Session = Depends(get_db), enforcer: Enforcer = Depends(get_enforcer)):
    """Cancel a bypass early; the user's open rule windows are re-applied right away."""
    cancelled, report = enforcer.cancel_bypass(db, user_id)
    return BypassCancelResult(cancelled=cancelled, report=TickReportOut.from_report(report))
