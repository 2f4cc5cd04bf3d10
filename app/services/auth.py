import hashlib
import secrets
from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from pytz import timezone, utc
from sqlalchemy.orm import Session

from app.config import settings
from app.models.refresh_token import RefreshToken

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Проверка пароля"""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Хеширование пароля"""
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Создание JWT токена"""
    to_encode = data.copy()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": datetime.now(utc) + expires_delta})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    """Декодирование JWT токена"""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None


def get_now() -> datetime:
    """Текущее время в часовом поясе приложения"""
    return datetime.now(timezone(settings.TIMEZONE))


def get_current_timestamp() -> str:
    """Получить текущий timestamp в ISO формате"""
    return get_now().isoformat()


def ensure_aware(value: datetime) -> datetime:
    """Время без зоны считаем UTC"""
    if value.tzinfo is None:
        return utc.localize(value)
    return value


def parse_timestamp(value: str) -> datetime:
    """Разбор ISO timestamp; значения без зоны считаем UTC"""
    return ensure_aware(datetime.fromisoformat(value.replace("Z", "+00:00")))


def generate_refresh_token() -> str:
    """Генерация случайного refresh token"""
    return secrets.token_urlsafe(32)


def hash_refresh_token(token: str) -> str:
    """SHA-256 от refresh token: токен случайный, соль не нужна, зато можно искать по индексу"""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_refresh_token_db(db: Session, user_id: str, refresh_token: str) -> RefreshToken:
    """Создание записи refresh token в БД"""
    now = get_now()
    db_token = RefreshToken(
        user_id=user_id,
        token_hash=hash_refresh_token(refresh_token),
        expires_at=(now + timedelta(hours=settings.REFRESH_TOKEN_EXPIRE_HOURS)).isoformat(),
        created_at=now.isoformat(),
    )
    db.add(db_token)
    db.commit()
    db.refresh(db_token)
    return db_token


def find_refresh_token(db: Session, refresh_token: str) -> Optional[RefreshToken]:
    """Поиск действующего (не отозванного и не истекшего) refresh token"""
    token = db.query(RefreshToken).filter(
        RefreshToken.token_hash == hash_refresh_token(refresh_token),
        RefreshToken.revoked_at.is_(None),
    ).first()
    if token is None:
        return None

    if parse_timestamp(token.expires_at) <= get_now():
        return None
    return token


def revoke_refresh_token(db: Session, refresh_token_obj: RefreshToken) -> None:
    """Инвалидация refresh token"""
    refresh_token_obj.revoked_at = get_current_timestamp()
    db.commit()


def cleanup_expired_tokens(db: Session, user_id: str) -> int:
    """Очистка истекших и отозванных токенов пользователя. Возвращает количество удаленных"""
    now = get_now()
    tokens = db.query(RefreshToken).filter(RefreshToken.user_id == user_id).all()

    count = 0
    for token in tokens:
        if token.revoked_at is not None or parse_timestamp(token.expires_at) <= now:
            db.delete(token)
            count += 1
    db.commit()
    return count
