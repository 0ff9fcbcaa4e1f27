# Auth Routes — register, verify email, resend code, login, current session

from supplyhub.api.common import bp, ok, body
from supplyhub.core import auth
from supplyhub.core.security import rate_limit


@bp.route("/api/auth/register", methods=["POST"])
@rate_limit("auth")
def api_register():
    """POST {email, password, name} → {ok, user_id}. Sends a 6-digit code by email."""
    data = body()
    result = auth.create_user(data.get("email"), data.get("password"), data.get("name"))
    return ok(user_id=result["user_id"]), 201


@bp.route("/api/auth/verify", methods=["POST"])
@rate_limit("auth")
def api_verify():
    """POST {user_id, code}"""
    data = body()
    auth.verify_code(data.get("user_id"), data.get("code"))
    return ok(verified=True)


@bp.route("/api/auth/resend", methods=["POST"])
@rate_limit("auth")
def api_resend():
    result = auth.resend_verification_code(body().get("email"))
    return ok(user_id=result["user_id"])


@bp.route("/api/auth/login", methods=["POST"])
@rate_limit("auth")
def api_login():
    """POST {email, password} → {ok, token, user}"""
    data = body()
    result = auth.login(data.get("email"), data.get("password"))
    return ok(token=result["token"], user=result["user"])
