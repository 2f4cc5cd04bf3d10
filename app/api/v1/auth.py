import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.user import User
from app.schemas.auth import LoginRequest, LoginResponse, RefreshRequest, RefreshResponse, LogoutRequest, SignupRequest
from app.schemas.user import UserResponse, PreferencesUpdate
from app.config import settings
from app.services.auth import (
    verify_password,
    get_password_hash,
    create_access_token,
    get_current_timestamp,
    generate_refresh_token,
    create_refresh_token_db,
    cleanup_expired_tokens,
    find_refresh_token,
    revoke_refresh_token,
)
from app.api.deps import get_current_user, get_user_permissions

router = APIRouter()
logger = logging.getLogger(__name__)


def build_user_response(user: User) -> UserResponse:
    response = UserResponse.model_validate(user)
    response.permissions = sorted(get_user_permissions(user))
    return response


def issue_session(db: Session, user: User) -> LoginResponse:
    """Выдать пару access/refresh токенов"""
    access_token = create_access_token(data={"sub": user.id})
    refresh_token = generate_refresh_token()

    # Очищаем старые истекшие токены пользователя
    cleanup_expired_tokens(db, user_id=user.id)
    create_refresh_token_db(db, user_id=user.id, refresh_token=refresh_token)

    return LoginResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=build_user_response(user),
    )


@router.post("/login", response_model=LoginResponse)
def login(login_data: LoginRequest, db: Session = Depends(get_db)):
    """Авторизация пользователя по email"""
    email = login_data.email.strip().lower()
    user = db.query(User).filter(User.email == email).first()

    if not user or not verify_password(login_data.password, user.password_hash):
        logger.warning(f"Неудачная попытка входа: '{email}'")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Неверный email или пароль",
        )

    if not user.is_active:
        logger.warning(f"Попытка входа деактивированного пользователя: '{email}'")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Пользователь деактивирован",
        )

    # Роль, выбранная на форме входа, должна совпадать с ролью пользователя
    if login_data.role and login_data.role != user.role:
        logger.warning(f"Вход с чужой ролью: '{email}', role={login_data.role}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Пользователь не имеет роли '{login_data.role}'",
        )

    user.last_login = get_current_timestamp()
    db.commit()
    db.refresh(user)

    logger.info(f"Успешный вход пользователя: '{user.email}' (ID: {user.id})")
    return issue_session(db, user)


@router.post("/signup", response_model=LoginResponse, status_code=status.HTTP_201_CREATED)
def signup(signup_data: SignupRequest, db: Session = Depends(get_db)):
    """Самостоятельная регистрация сотрудника или охранника"""
    email = signup_data.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Пользователь с таким email уже существует",
        )

    user = User(
        email=email,
        name=signup_data.name.strip(),
        role=signup_data.role,
        department=signup_data.department,
        password_hash=get_password_hash(signup_data.password),
        is_active=1,
        theme="light",
        created_at=get_current_timestamp(),
    )
    user.last_login = user.created_at
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"Зарегистрирован пользователь: '{user.email}' (ID: {user.id}, role={user.role})")
    return issue_session(db, user)


@router.post("/refresh", response_model=RefreshResponse)
def refresh_token(refresh_data: RefreshRequest, db: Session = Depends(get_db)):
    """Обновление access token с помощью refresh token"""
    refresh_token_obj = find_refresh_token(db, refresh_data.refresh_token)

    if not refresh_token_obj:
        logger.warning("Попытка использовать невалидный или истекший refresh token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Невалидный или истекший refresh token",
        )

    user_id = refresh_token_obj.user_id

    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        logger.warning(f"Попытка refresh токена для неактивного пользователя: {user_id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Пользователь деактивирован",
        )

    # Инвалидируем старый refresh token (rotation)
    revoke_refresh_token(db, refresh_token_obj)
    cleanup_expired_tokens(db, user_id=user_id)

    access_token = create_access_token(data={"sub": user_id})
    new_refresh_token = generate_refresh_token()
    create_refresh_token_db(db, user_id=user_id, refresh_token=new_refresh_token)

    logger.info(f"Обновлен токен для пользователя ID: {user_id}")

    return RefreshResponse(
        access_token=access_token,
        refresh_token=new_refresh_token,
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.post("/logout")
def logout(logout_data: LogoutRequest, db: Session = Depends(get_db)):
    """Выход из системы - инвалидация refresh token"""
    refresh_token_obj = find_refresh_token(db, logout_data.refresh_token)

    if refresh_token_obj:
        revoke_refresh_token(db, refresh_token_obj)
        logger.info(f"Токен отозван для пользователя ID: {refresh_token_obj.user_id}")

    # Неизвестный токен - тоже успех (idempotent)
    return {"message": "Успешный выход из системы"}


@router.get("/me", response_model=UserResponse)
def get_me(current_user: User = Depends(get_current_user)):
    """Текущий пользователь с правами его роли"""
    return build_user_response(current_user)


@router.patch("/me/preferences", response_model=UserResponse)
def update_preferences(
    preferences: PreferencesUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Сохранить настройки интерфейса (тема)"""
    current_user.theme = preferences.theme
    db.commit()
    db.refresh(current_user)
    return build_user_response(current_user)
