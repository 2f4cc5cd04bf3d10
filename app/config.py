import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./visitor_pass.db")

    # JWT
    SECRET_KEY: str = os.getenv("SECRET_KEY", "change-me-in-production")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
    REFRESH_TOKEN_EXPIRE_HOURS: int = int(os.getenv("REFRESH_TOKEN_EXPIRE_HOURS", "168"))

    # CORS
    CORS_ORIGINS: list[str] = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173").split(",")
        if origin.strip()
    ]

    # Timezone (в нем считается конец дня визита для valid_until)
    TIMEZONE: str = os.getenv("TIMEZONE", "Europe/Moscow")

    # Server
    HOST: str = os.getenv("HOST", "127.0.0.1")
    PORT: int = int(os.getenv("PORT", "8000"))

    # QR-пропуска
    QR_SIGNING_SECRET: str = os.getenv("QR_SIGNING_SECRET", "change-me-qr-secret")
    QR_IMAGE_WIDTH: int = int(os.getenv("QR_IMAGE_WIDTH", "300"))

    # Email (Resend). Без ключа используется mock-отправка
    RESEND_API_KEY: str = os.getenv("RESEND_API_KEY", "").strip()
    RESEND_API_URL: str = os.getenv("RESEND_API_URL", "https://api.resend.com/emails")
    EMAIL_FROM: str = os.getenv("EMAIL_FROM", "VMS Pro <onboarding@resend.dev>")
    EMAIL_TIMEOUT_SECONDS: float = float(os.getenv("EMAIL_TIMEOUT_SECONDS", "15"))

    # Название организации по умолчанию (если не задано в настройках)
    COMPANY_NAME: str = os.getenv("COMPANY_NAME", "Tech Solutions Inc.")


settings = Settings()
