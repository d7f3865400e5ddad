# hotcontent/main.py

from fastapi import FastAPI

from hotcontent.config import get_settings
from hotcontent.logging_config import configure_logging
from hotcontent.routers import admin_router, hot_router

settings = get_settings()
configure_logging(json_format=settings.LOG_JSON, level=settings.LOG_LEVEL)

app = FastAPI(title="Hot Content Backend")

app.include_router(admin_router)
app.include_router(hot_router)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@app.get("/health")
def health() -> dict:
    return {"status": "ok", "service": "hot-content-backend"}


@app.get("/")
def root() -> dict:
    return {
        "service": "hot-content-backend",
        "environment": settings.ENVIRONMENT,
        "docs": "/docs",
    }
