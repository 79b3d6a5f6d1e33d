from datetime import datetime
from models.db import db


class Profile(db.Model):
    __tablename__ = "profiles"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), unique=True, nullable=False, index=True)

    full_name = db.Column(db.String(120), nullable=True)
    business_name = db.Column(db.String(160), nullable=True)
    country = db.Column(db.String(2), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    user = db.relationship("User", back_populates="profile")

    def to_dict(self) -> dict:
        return {
            "full_name": self.full_name,
            "business_name": self.business_name,
            "country": self.country,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
