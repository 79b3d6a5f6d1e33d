from flask import current_app, make_response, request

ALLOW_HEADERS = "authorization, x-client-info, apikey, content-type"
ALLOW_METHODS = "POST, GET, OPTIONS"


def _allowed_origin():
    origin = request.headers.get("Origin")
    if origin and origin in current_app.config.get("CORS_ALLOWED_ORIGINS", []):
        return origin
    return None


def preflight():
    """Answers OPTIONS for every route; other methods fall through."""
    if request.method != "OPTIONS":
        return None
    # headers are added by the after_request hook
    return make_response("", 204)


def apply_cors_headers(resp):
    origin = _allowed_origin()
    # unlisted origins get no Allow-Origin at all, so the browser blocks them
    if origin:
        resp.headers["Access-Control-Allow-Origin"] = origin
        resp.headers["Access-Control-Allow-Credentials"] = "true"
        resp.headers["Vary"] = "Origin"
    resp.headers["Access-Control-Allow-Headers"] = ALLOW_HEADERS
    resp.headers["Access-Control-Allow-Methods"] = ALLOW_METHODS
    return resp
