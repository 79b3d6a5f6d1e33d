from .db import db
from .user import User
from .phone_identity import PhoneIdentity
from .pending_code import PendingCode, OTP_PURPOSES
from .profile import Profile
from .auth_account import AuthAccount
from .session import Session
from .audit_log import AuditLog
from .ip_rate_limit import IpRateLimit
