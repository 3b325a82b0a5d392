from fastapi import FastAPI
from datetime import datetime, timezone

import logging
from vmlaunch.api.launch_routes import client
from vmlaunch.core.settings import settings
from vmlaunch.core.response import ServiceStatus

logger = logging.getLogger(__name__)

logger.info("Запуск приложения")
start_time = datetime.now(timezone.utc)

app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION)

app.include_router(client)


@app.get("/api/health", tags=["Health"], summary="Проверка состояния сервиса")
async def health_check():
    """Эндпоинт для проверки доступности сервиса."""
    uptime = (datetime.now(timezone.utc) - start_time).total_seconds()
    return {
        "status": ServiceStatus.success.value,
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "debug": settings.DEBUG,
        "server_url": settings.SERVER_URL,
        "uptime_seconds": int(uptime)
    }


def run():
    import uvicorn
    uvicorn.run("vmlaunch.main:app", host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
