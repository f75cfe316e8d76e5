"""Live view of the rule windows that are open right now."""
import logging
import pytz
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from guardarr.database import get_db
from guardarr.dependencies import get_enforcer
from guardarr.models.rule import Rule, UserRule
from guardarr.models.user import User
from guardarr.schemas.activity import ActiveRestrictionOut, ActiveRestrictionsOut
from guardarr.services import bypass_service, settings_service
from guardarr.services.enforcer import Enforcer
from guardarr.services.rating_filter import split_ratings
from guardarr.services.schedule import is_rule_active, minutes_remaining, resolve_civil_time

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=ActiveRestrictionsOut)
def active_restrictions(db: Session = Depends(get_db), enforcer: Enforcer = Depends(get_enforcer)):
    """Every assignment whose rule is switched on and inside its window.

    Bypassed users are listed with ``has_bypass`` set; ``is_applied`` is the
    enforcer's belief, which can lag by up to one tick.
    """
    now = enforcer.now()
    tz_name = settings_service.get_timezone(db)
    try:
        if not tz_name:
            raise pytz.UnknownTimeZoneError(tz_name)
        reference = resolve_civil_time(now, tz_name)
    except pytz.UnknownTimeZoneError:
        raise HTTPException(status_code=409, detail=f"Invalid timezone setting: {tz_name}")

    bypassed = bypass_service.active_user_ids(db, now)
    rows = (
        db.query(User, Rule)
        .join(UserRule, UserRule.user_id == User.user_id)
        .join(Rule, Rule.rule_id == UserRule.rule_id)
        .filter(Rule.is_active == True, User.is_admin == False)  # noqa: E712
        .order_by(User.plex_username, Rule.priority.desc())
        .all()
    )
    restrictions = [
        ActiveRestrictionOut(
            user_id=user.user_id,
            username=user.plex_username,
            thumb=user.plex_thumb,
            is_home=user.is_home,
            rule_id=rule.rule_id,
            rule_name=rule.name,
            allowed_ratings=split_ratings(rule.allowed_ratings),
            blocked_ratings=split_ratings(rule.blocked_ratings),
            allowed_tv_ratings=split_ratings(rule.allowed_tv_ratings),
            blocked_tv_ratings=split_ratings(rule.blocked_tv_ratings),
            start_time=rule.start_time,
            end_time=rule.end_time,
            minutes_remaining=minutes_remaining(rule.end_time, reference),
            priority=rule.priority,
            has_bypass=user.user_id in bypassed,
            is_applied=enforcer.tracker.is_applied(user.user_id, rule.rule_id),
        )
        for user, rule in rows
        if is_rule_active(rule, reference)
    ]
    return ActiveRestrictionsOut(
        restrictions=restrictions,
        current_day=reference.weekday,
        current_time=reference.clock,
        timezone=tz_name,
    )
