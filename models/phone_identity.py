from datetime import datetime
from models.db import db


class PhoneIdentity(db.Model):
    """Canonical phone -> user mapping. Written only when an identity is minted."""
    __tablename__ = "phone_identities"

    id = db.Column(db.Integer, primary_key=True)
    phone = db.Column(db.String(20), unique=True, nullable=False, index=True)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
