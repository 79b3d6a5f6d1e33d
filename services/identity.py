import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError

from models import db
from models.phone_identity import PhoneIdentity
from models.user import User
from security.auth_backend import AuthBackend, AuthBackendError
from security.phone import mask_phone
from security.session import AuthSession
from utils.audit import log_event
from utils.errors import InternalInconsistency, UpstreamFailure

logger = logging.getLogger(__name__)


@dataclass
class LoginResult:
    user: User
    session: AuthSession
    is_new_user: bool = False

    @property
    def needs_profile_setup(self) -> bool:
        return self.user.profile is None

    def to_payload(self, now: Optional[datetime] = None, include_new_user: bool = True) -> dict:
        profile = self.user.profile
        payload = {
            "user": {"id": self.user.id, "phone": self.user.phone},
            "session": self.session.to_dict(now),
            "profile": profile.to_dict() if profile else None,
            "needsProfileSetup": profile is None,
        }
        if include_new_user:
            payload["isNewUser"] = self.is_new_user
        return payload


class IdentityResolver:
    """
    Owns the single phone -> user mapping. Only `find_or_create` writes it,
    and only OTP verification calls `find_or_create`.
    """

    def __init__(self, auth_backend: AuthBackend):
        self.auth_backend = auth_backend

    def find(self, phone: str) -> Optional[User]:
        mapping = PhoneIdentity.query.filter_by(phone=phone).first()
        if not mapping:
            return None
        return db.session.get(User, mapping.user_id)

    def find_or_create(self, phone: str, country: str) -> Tuple[User, bool]:
        user = self.find(phone)
        if user:
            return user, False

        try:
            user_id = self.auth_backend.create_identity(phone, country)
        except AuthBackendError as exc:
            logger.error("Identity creation failed for %s: %s", mask_phone(phone), exc)
            raise UpstreamFailure("Account error - please try again") from exc

        user = User(id=user_id, phone=phone, country=(country or "").upper() or None)
        db.session.add(user)
        db.session.add(PhoneIdentity(phone=phone, user_id=user_id))
        try:
            db.session.commit()
        except IntegrityError:
            # lost a race with a concurrent first login for the same phone
            db.session.rollback()
            winner = self.find(phone)
            if winner is None:
                logger.error("Phone mapping conflict without a winner for %s", mask_phone(phone))
                raise InternalInconsistency()
            return winner, False

        log_event("IDENTITY_CREATED", user_id=user_id, entity="user", entity_id=user_id,
                  metadata={"phone": mask_phone(phone)})
        return user, True
