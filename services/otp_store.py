from datetime import datetime, timedelta

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from models import db
from models.pending_code import PendingCode

_UPSERT_DIALECTS = {
    "sqlite": sqlite_insert,
    "postgresql": pg_insert,
}


def store_pending_code(phone: str, purpose: str, code_hash: str, now: datetime, ttl_seconds: int) -> None:
    """
    Replace the (phone, purpose) row with a fresh unverified code in one
    conflict-resolving write.

    Dialects without ON CONFLICT fall back to delete-then-insert. Two
    concurrent issuances can then interleave so that the earlier code stops
    verifying one write later; the user holds the newer code either way.
    """
    values = {
        "phone": phone,
        "purpose": purpose,
        "code_hash": code_hash,
        "created_at": now,
        "expires_at": now + timedelta(seconds=ttl_seconds),
        "verified_at": None,
    }

    insert = _UPSERT_DIALECTS.get(db.engine.dialect.name)
    if insert is not None:
        stmt = insert(PendingCode).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["phone", "purpose"],
            set_={
                "code_hash": stmt.excluded.code_hash,
                "created_at": stmt.excluded.created_at,
                "expires_at": stmt.excluded.expires_at,
                "verified_at": None,
            },
        )
        db.session.execute(stmt)
    else:
        PendingCode.query.filter_by(phone=phone, purpose=purpose).delete(synchronize_session=False)
        db.session.add(PendingCode(**values))

    db.session.commit()


def consume_pending_code(phone: str, purpose: str, code_hash: str, now: datetime) -> bool:
    """
    Marks the matching live code verified. True only for the single caller
    whose UPDATE flipped verified_at from NULL; wrong, expired and already
    used codes all come back False.
    """
    claimed = (
        PendingCode.query
        .filter(
            PendingCode.phone == phone,
            PendingCode.purpose == purpose,
            PendingCode.code_hash == code_hash,
            PendingCode.verified_at.is_(None),
            PendingCode.expires_at > now,
        )
        .update({"verified_at": now}, synchronize_session=False)
    )
    db.session.commit()
    return claimed == 1


def purge_stale_codes(now: datetime) -> int:
    """Storage hygiene only; expiry is already enforced at read time."""
    deleted = (
        PendingCode.query
        .filter(PendingCode.expires_at <= now)
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return deleted
