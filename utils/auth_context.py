from functools import wraps
from flask import g, request
from models import db
from models.user import User
from services import get_services
from utils.errors import Unauthorized

def bearer_token():
    header = request.headers.get("Authorization") or ""
    if not header.startswith("Bearer "):
        return None
    return header[len("Bearer "):].strip() or None

def load_current_user():
    g.user = None
    g.access_token = bearer_token()
    if not g.access_token:
        return
    user_id = get_services().auth_backend.user_id_for_token(g.access_token)
    if user_id:
        g.user = db.session.get(User, user_id)

def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            raise Unauthorized()
        return fn(*args, **kwargs)
    return wrapper
