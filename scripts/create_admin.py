#!/usr/bin/env python3
"""
Создание первого администратора (дальше пользователей заводят через API)
Использование:
    python3 scripts/create_admin.py
    python3 scripts/create_admin.py --email admin@company.com --name "Admin User" --password secret
"""
import argparse
import getpass
import os
import sys

# Добавляем корневую директорию в путь
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.exc import SQLAlchemyError

from app.database import SessionLocal
from app.models.user import User
from app.services.auth import get_password_hash, get_current_timestamp


def create_admin(email: str, name: str, password: str) -> bool:
    db = SessionLocal()

    try:
        email = email.strip().lower()
        if db.query(User).filter(User.email == email).first():
            print(f"Ошибка: пользователь '{email}' уже существует")
            return False

        admin = User(
            email=email,
            name=name,
            role="admin",
            department="Operations",
            password_hash=get_password_hash(password),
            is_active=1,
            theme="light",
            created_at=get_current_timestamp(),
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)

        print(f"✓ Администратор '{email}' создан")
        print(f"  ID: {admin.id}")
        return True

    except SQLAlchemyError as e:
        db.rollback()
        print(f"Ошибка при создании администратора: {e}")
        return False
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(description="Создать первого администратора")
    parser.add_argument("--email", help="Email (логин)", default=None)
    parser.add_argument("--name", help="Имя", default=None)
    parser.add_argument("--password", help="Пароль", default=None)
    args = parser.parse_args()

    email = args.email or input("Email: ").strip()
    if not email:
        print("Ошибка: email не может быть пустым")
        sys.exit(1)

    name = args.name or input("Имя: ").strip() or "Admin User"

    password = args.password or getpass.getpass("Пароль: ").strip()
    if len(password) < 6:
        print("Ошибка: пароль должен содержать минимум 6 символов")
        sys.exit(1)

    if not create_admin(email, name, password):
        sys.exit(1)


if __name__ == "__main__":
    main()
