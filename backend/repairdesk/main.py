from fastapi import FastAPI
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from repairdesk.api.deps import get_apns_provider
from repairdesk.api.routes import auth, notifications, staff
from repairdesk.core.config import settings
from repairdesk.core.firebase import init_firebase
from repairdesk.core.observability import ObservabilityMiddleware, metrics_registry
from repairdesk.db import session as db_session

app = FastAPI(title="RepairDesk Backend")

allowed_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()] or [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)
app.add_middleware(
    ObservabilityMiddleware,
    registry=metrics_registry,
    exclude_paths={"/metrics", "/health"},
)

app.include_router(auth.router)
app.include_router(staff.router)
app.include_router(notifications.router)


@app.get("/health")
def health():
    details = {"api": "ok"}
    failures: list[str] = []

    try:
        with db_session.SessionLocal() as db:
            db.execute(text("SELECT 1"))
        details["db"] = "ok"
    except Exception as exc:
        details["db"] = "error"
        details["db_error"] = str(exc)
        failures.append("db")

    # Push channels are reported but do not mark the API as unavailable.
    details["fcm"] = "ok" if init_firebase() else "not_configured"
    details["apns"] = "ok" if get_apns_provider().configured else "not_configured"

    status = "ok" if not failures else "degraded"
    payload = {"status": status, "checks": details}
    status_code = 200 if not failures else 503
    return JSONResponse(payload, status_code=status_code)


@app.get("/metrics", response_class=PlainTextResponse)
def metrics():
    return PlainTextResponse(
        metrics_registry.render_prometheus(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


@app.on_event("startup")
def create_tables():
    if settings.auto_create_tables:
        db_session.init_db()
