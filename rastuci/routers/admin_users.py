from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rastuci.db import get_db
from rastuci.models.user import User
from rastuci.routers.auth import user_to_dict
from rastuci.schemas import UserIn, UserUpdate
from rastuci.utils.responses import ApiError, ok
from rastuci.utils.security import hash_password

router = APIRouter(prefix="/api/admin/users", tags=["admin-users"])


@router.get("")
def list_users(db: Session = Depends(get_db)):
    users = db.query(User).order_by(User.id.asc()).all()
    return ok([user_to_dict(u) for u in users])


@router.post("", status_code=201)
def create_user(body: UserIn, db: Session = Depends(get_db)):
    if db.query(User).filter(User.username == body.username).first():
        raise ApiError(409, "El usuario ya existe")
    user = User(
        username=body.username,
        email=body.email,
        password_hash=hash_password(body.password),
        role=body.role.value,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return ok(user_to_dict(user), "Usuario creado")


@router.patch("/{user_id}")
def update_user(user_id: int, body: UserUpdate, db: Session = Depends(get_db)):
    user = db.get(User, user_id)
    if not user:
        raise ApiError(404, "Usuario no encontrado")
    if body.email is not None:
        user.email = body.email
    if body.role is not None:
        user.role = body.role.value
    if body.is_active is not None:
        user.is_active = body.is_active
    if body.password:
        user.password_hash = hash_password(body.password)
    db.commit()
    db.refresh(user)
    return ok(user_to_dict(user), "Usuario actualizado")
