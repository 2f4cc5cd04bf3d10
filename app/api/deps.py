from typing import Set
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.services.auth import decode_access_token

security = HTTPBearer()

# Права по ролям: какие экраны и действия доступны роли
ROLE_PERMISSIONS = {
    "admin": {
        "view_dashboard",
        "register_visitor",
        "approve_visitor",
        "pre_approve",
        "check_in_visitor",
        "view_all_visitors",
        "manage_settings",
    },
    "employee": {
        "view_dashboard",
        "approve_visitor",
        "pre_approve",
    },
    "guard": {
        "view_dashboard",
        "register_visitor",
        "check_in_visitor",
    },
}


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Получить текущего пользователя из JWT токена"""
    payload = decode_access_token(credentials.credentials)

    user_id = payload.get("sub") if payload else None
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Невалидный токен авторизации",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Пользователь не найден",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Пользователь деактивирован",
        )

    return user


def get_current_active_admin(
    current_user: User = Depends(get_current_user)
) -> User:
    """Проверка что текущий пользователь - админ"""
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Недостаточно прав доступа",
        )
    return current_user


def get_user_permissions(user: User) -> Set[str]:
    """Получить набор прав пользователя по его роли"""
    return set(ROLE_PERMISSIONS.get(user.role, set()))


def require_permission(permission_code: str):
    """Dependency для проверки наличия права у пользователя"""
    def check_permission(current_user: User = Depends(get_current_user)) -> User:
        if permission_code not in get_user_permissions(current_user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Недостаточно прав: требуется право '{permission_code}'",
            )
        return current_user

    return check_permission
