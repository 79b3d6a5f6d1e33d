from datetime import datetime
from models.db import db

OTP_PURPOSES = ("login", "registration", "rider_login", "password_reset")


class PendingCode(db.Model):
    __tablename__ = "phone_otps"
    __table_args__ = (
        # one row per (phone, purpose); issuance upserts against this
        db.UniqueConstraint("phone", "purpose", name="uq_phone_otps_phone_purpose"),
    )

    id = db.Column(db.Integer, primary_key=True)
    phone = db.Column(db.String(20), nullable=False, index=True)
    purpose = db.Column(db.String(32), nullable=False, default="login")

    # keyed hash only, the raw code is never stored
    code_hash = db.Column(db.String(128), nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)
    verified_at = db.Column(db.DateTime, nullable=True)
