#!/usr/bin/env python3
"""
Запуск API пропусков посетителей
HOST и PORT берутся из app.config, RELOAD=true включает автоперезапуск
"""
import os
import uvicorn
from app.config import settings

if __name__ == "__main__":
    # Под systemd reload не нужен
    reload = os.environ.get("RELOAD", "false").lower() == "true"

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=reload,
        proxy_headers=True,
    )
