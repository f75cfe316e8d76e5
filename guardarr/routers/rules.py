"""Rule API routes."""
import logging
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy.orm import Session

from guardarr.database import get_db
from guardarr.dependencies import get_enforcer
from guardarr.models.activity import ActivityAction
from guardarr.models.rule import Rule, UserRule
from guardarr.schemas.rule import RuleCreate, RuleUpdate, RuleOut
from guardarr.services.activity_service import record_activity
from guardarr.services.enforcer import Enforcer
from guardarr.services.rating_filter import describe_restriction

logger = logging.getLogger(__name__)
router = APIRouter()


def _get_rule_or_404(db: Session, rule_id: str) -> Rule:
    rule = db.query(Rule).filter(Rule.rule_id == rule_id).first()
    if not rule:
        raise HTTPException(status_code=404, detail="Rule not found")
    return rule


def _assigned_user_ids(db: Session, rule_id: str) -> list[str]:
    return [a.user_id for a in db.query(UserRule).filter(UserRule.rule_id == rule_id).all()]


@router.post("/", response_model=RuleOut, status_code=status.HTTP_201_CREATED)
def create_rule(payload: RuleCreate, db: Session = Depends(get_db)):
    """Create a new time-windowed rating rule."""
    rule = Rule(**payload.model_dump())
    db.add(rule)
    db.commit()
    db.refresh(rule)
    record_activity(db, ActivityAction.rule_created, rule_name=rule.name, details=describe_restriction(rule))
    logger.info("Created rule %s (%s)", rule.rule_id, rule.name)
    return rule


@router.get("/", response_model=list[RuleOut])
def list_rules(db: Session = Depends(get_db)):
    """List rules, highest priority first."""
    return db.query(Rule).order_by(Rule.priority.desc(), Rule.name).all()


@router.get("/{rule_id}", response_model=RuleOut)
def get_rule(rule_id: str, db: Session = Depends(get_db)):
    return _get_rule_or_404(db, rule_id)


@router.patch("/{rule_id}", response_model=RuleOut)
def update_rule(
    rule_id: str,
    payload: RuleUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    enforcer: Enforcer = Depends(get_enforcer),
):
    """Partial update. Assigned users are re-reconciled in the background."""
    rule = _get_rule_or_404(db, rule_id)
    for field, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(rule, field, value)
    db.commit()
    db.refresh(rule)
    record_activity(db, ActivityAction.rule_updated, rule_name=rule.name, details=describe_restriction(rule))
    logger.info("Updated rule %s", rule_id)
    background_tasks.add_task(enforcer.reconcile_users, _assigned_user_ids(db, rule_id))
    return rule


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_rule(
    rule_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    enforcer: Enforcer = Depends(get_enforcer),
):
    """Delete a rule and its assignments; live filters are lifted in the background."""
    rule = _get_rule_or_404(db, rule_id)
    user_ids = _assigned_user_ids(db, rule_id)
    name = rule.name
    db.query(UserRule).filter(UserRule.rule_id == rule_id).delete(synchronize_session=False)
    db.delete(rule)
    db.commit()
    record_activity(db, ActivityAction.rule_deleted, rule_name=name)
    logger.info("Deleted rule %s (%s)", rule_id, name)
    background_tasks.add_task(enforcer.reconcile_users, user_ids)
