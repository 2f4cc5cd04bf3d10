import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.schemas.user import UserCreate, UserUpdate, UserResponse, UsersListResponse
from app.api.deps import get_current_active_admin
from app.api.v1.auth import build_user_response
from app.services.auth import get_password_hash, get_current_timestamp

router = APIRouter()
logger = logging.getLogger(__name__)


def get_user_or_404(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Пользователь не найден",
        )
    return user


def ensure_not_self(user: User, current_user: User) -> None:
    # Нельзя деактивировать самого себя
    if user.id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Нельзя деактивировать самого себя",
        )


@router.get("/users", response_model=UsersListResponse)
def get_users(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_admin),
):
    """Получить список пользователей (только для админов)"""
    users = db.query(User).order_by(User.created_at).all()
    return UsersListResponse(users=[build_user_response(user) for user in users])


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    user_data: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_admin),
):
    """Создать нового пользователя (только для админов)"""
    email = user_data.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Пользователь с таким email уже существует",
        )

    user = User(
        email=email,
        name=user_data.name.strip(),
        role=user_data.role,
        department=user_data.department,
        password_hash=get_password_hash(user_data.password),
        is_active=1,
        theme="light",
        created_at=get_current_timestamp(),
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"Создан пользователь: '{user.email}' (role={user.role}), admin='{current_user.email}'")
    return build_user_response(user)


@router.put("/users/{user_id}", response_model=UserResponse)
def update_user(
    user_id: str,
    user_data: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_admin),
):
    """Обновить пользователя (только для админов)"""
    user = get_user_or_404(db, user_id)

    if user_data.email is not None:
        email = user_data.email.lower()
        # Проверяем что новый email не занят другим пользователем
        existing_email = db.query(User).filter(
            User.email == email,
            User.id != user_id
        ).first()
        if existing_email:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Пользователь с таким email уже существует",
            )
        user.email = email

    if user_data.name is not None:
        user.name = user_data.name.strip()

    if user_data.department is not None:
        user.department = user_data.department

    if user_data.password is not None:
        user.password_hash = get_password_hash(user_data.password)

    if user_data.role is not None:
        if user.id == current_user.id and user_data.role != "admin":
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Нельзя снять роль администратора с самого себя",
            )
        user.role = user_data.role

    if user_data.is_active is not None:
        if not user_data.is_active:
            ensure_not_self(user, current_user)
        user.is_active = 1 if user_data.is_active else 0

    db.commit()
    db.refresh(user)

    logger.info(f"Обновлен пользователь: '{user.email}', admin='{current_user.email}'")
    return build_user_response(user)


@router.delete("/users/{user_id}")
def delete_user(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_admin),
):
    """Деактивировать пользователя (только для админов)"""
    user = get_user_or_404(db, user_id)
    ensure_not_self(user, current_user)

    user.is_active = 0
    db.commit()

    logger.info(f"Деактивирован пользователь: '{user.email}', admin='{current_user.email}'")
    return {"success": True}


@router.patch("/users/{user_id}/activate", response_model=UserResponse)
def activate_user(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_admin),
):
    """Активировать пользователя (только для админов)"""
    user = get_user_or_404(db, user_id)

    user.is_active = 1
    db.commit()
    db.refresh(user)

    logger.info(f"Активирован пользователь: '{user.email}', admin='{current_user.email}'")
    return build_user_response(user)


@router.patch("/users/{user_id}/deactivate", response_model=UserResponse)
def deactivate_user(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_admin),
):
    """Деактивировать пользователя (только для админов)"""
    user = get_user_or_404(db, user_id)
    ensure_not_self(user, current_user)

    user.is_active = 0
    db.commit()
    db.refresh(user)

    logger.info(f"Деактивирован пользователь: '{user.email}', admin='{current_user.email}'")
    return build_user_response(user)
