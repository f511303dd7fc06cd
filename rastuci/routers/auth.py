from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from rastuci.db import get_db
from rastuci.models.user import User
from rastuci.schemas import LoginIn
from rastuci.utils.logs import get_logger
from rastuci.utils.ratelimit import RATE_LIMITS, get_client_id, limiter
from rastuci.utils.responses import ApiError, ok
from rastuci.utils.security import verify_password

logger = get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "role": user.role,
        "is_active": bool(user.is_active),
    }


def _login_key(request: Request) -> str:
    return "login:{0}".format(get_client_id(request))


@router.post("/login")
def login(body: LoginIn, request: Request, db: Session = Depends(get_db)):
    cfg = RATE_LIMITS["auth"]
    key = _login_key(request)

    # only failed attempts count
    if limiter.is_blocked(key, cfg.limit):
        raise ApiError(429, "Demasiados intentos. Probá de nuevo en 15 minutos.", "RATE_LIMITED")

    user = db.query(User).filter(User.username == body.username).first()
    if not user or not user.is_active or not verify_password(body.password, user.password_hash):
        attempts = limiter.hit(key, cfg.window_seconds)
        logger.warning("Failed login for %r", body.username, extra={"attempts": attempts})
        raise ApiError(401, "Usuario o contraseña incorrectos", "INVALID_CREDENTIALS")

    limiter.reset(key)
    request.session["user_id"] = user.id
    request.session["username"] = user.username
    request.session["role"] = (user.role or "").strip().lower()
    logger.info("Login success: %s role=%s", user.username, user.role)
    return ok(user_to_dict(user), "Sesión iniciada")


@router.post("/logout")
def logout(request: Request):
    request.session.clear()
    return ok(None, "Sesión cerrada")


@router.get("/me")
def me(request: Request, db: Session = Depends(get_db)):
    user_id = request.session.get("user_id")
    user = db.get(User, user_id) if user_id else None
    if not user or not user.is_active:
        raise ApiError(401, "No autorizado")
    return ok(user_to_dict(user))
