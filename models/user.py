from datetime import datetime
from models.db import db


class User(db.Model):
    __tablename__ = "users"

    # same id as the identity in the backend auth primitive
    id = db.Column(db.String(36), primary_key=True)

    phone = db.Column(db.String(20), unique=True, nullable=False, index=True)
    country = db.Column(db.String(2), nullable=True)

    pin_hash = db.Column(db.String(255), nullable=True)
    pin_failed_attempts = db.Column(db.Integer, default=0, nullable=False)
    pin_locked_until = db.Column(db.DateTime, nullable=True)
    pin_updated_at = db.Column(db.DateTime, nullable=True)

    last_login_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    profile = db.relationship("Profile", uselist=False, back_populates="user")

    @property
    def has_pin(self) -> bool:
        return bool(self.pin_hash)
