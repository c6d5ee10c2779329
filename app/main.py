# app/main.py

from fastapi import FastAPI

from app.config import get_settings
from app.logging_config import configure_logging
from app.routers import admin_archive_router

settings = get_settings()
configure_logging(json_format=settings.LOG_JSON, level=settings.LOG_LEVEL)

app = FastAPI(title="Signature Archive Service")

# /v1/admin/archive/{run,status,preview,watermark}
app.include_router(admin_archive_router)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@app.get("/health")
def health() -> dict:
    return {
        "status": "ok",
        "service": "signature-archive",
        "archiving_enabled": settings.ARCHIVING_ENABLED,
    }
