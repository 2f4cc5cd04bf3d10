import logging
from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.api.v1 import auth, utils, users, settings as settings_api, visitors, pre_approvals, dashboard
from app.api.deps import get_current_user
from app.models.user import User

# Настройка логирования
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

app = FastAPI(title="Visitor Pass API", version="1.0.0")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Подключение роутеров
app.include_router(auth.router, prefix="/api/v1/auth", tags=["auth"])
app.include_router(utils.router, prefix="/api/v1/utils", tags=["utils"])
app.include_router(dashboard.router, prefix="/api/v1", tags=["dashboard"])
app.include_router(visitors.router, prefix="/api/v1", tags=["visitors"])
app.include_router(pre_approvals.router, prefix="/api/v1", tags=["pre-approvals"])
app.include_router(users.router, prefix="/api/v1", tags=["users"])
app.include_router(settings_api.router, prefix="/api/v1", tags=["settings"])


@app.get("/")
def read_root(current_user: User = Depends(get_current_user)):
    return {"message": "Visitor Pass API"}


@app.get("/health")
def health_check():
    return {"status": "ok"}
