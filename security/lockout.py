from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy import case, or_, update

from models import db
from models.user import User


def is_locked(user: User, now: datetime) -> Tuple[bool, Optional[datetime]]:
    """
    Returns (locked, locked_until)
    """
    if not user.pin_locked_until or user.pin_locked_until <= now:
        return False, None
    return True, user.pin_locked_until


def register_failure(user: User, now: datetime, max_attempts: int, lockout_minutes: int) -> Tuple[int, Optional[datetime]]:
    """
    Counts one failed PIN attempt. Returns (fail_count, locked_until);
    locked_until is set only if the account is locked after this call.

    Increment and lock happen in one UPDATE guarded by "not currently
    locked", so a request that races a lockout is not counted.
    """
    lock_until = now + timedelta(minutes=lockout_minutes)
    next_count = User.pin_failed_attempts + 1

    stmt = (
        update(User)
        .where(
            User.id == user.id,
            or_(User.pin_locked_until.is_(None), User.pin_locked_until <= now),
        )
        .values(
            pin_failed_attempts=next_count,
            pin_locked_until=case((next_count >= max_attempts, lock_until), else_=User.pin_locked_until),
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    db.session.execute(stmt)
    db.session.commit()

    # commit expired the instance; these reads come from the row just written
    locked, locked_until = is_locked(user, now)
    return user.pin_failed_attempts, locked_until if locked else None


def reset_attempts(user: User, now: datetime) -> None:
    """
    Clears failure counter after a successful PIN verification.
    """
    user.pin_failed_attempts = 0
    user.pin_locked_until = None
    user.last_login_at = now
    user.updated_at = now
    db.session.commit()
