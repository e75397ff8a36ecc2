import asyncio
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from .api import documents, notifications, payments, permits
from .config import Base, SessionLocal, engine, settings
from .constants import DEFAULT_PERMIT_TYPES
from .core.errors import register_exception_handlers
from .core.logging import configure_logging
from .core.request_context import REQUEST_ID_HEADER, assign_request_id, release_request_id
from .models.models import PermitType
from .services.notifications import notification_center

configure_logging(settings.log_level, json_output=settings.log_json)
logger = logging.getLogger(__name__)


def ensure_permit_types(session: Session) -> None:
    existing = {permit_type.slug: permit_type for permit_type in session.query(PermitType).all()}
    updated = False
    for entry in DEFAULT_PERMIT_TYPES:
        permit_type = existing.get(entry["slug"])
        if not permit_type:
            session.add(PermitType(**entry))
            updated = True
            continue
        for field in ("title", "kind", "description"):
            if getattr(permit_type, field) != entry[field]:
                setattr(permit_type, field, entry[field])
                updated = True
    if updated:
        session.commit()


app = FastAPI(title="Permit Workflow Service")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.on_event("startup")
def startup() -> None:
    # In dev we make sure tables exist. Alembic migrations should be used for real schema evolution.
    Base.metadata.create_all(bind=engine)
    with SessionLocal() as session:
        ensure_permit_types(session)


app.include_router(permits.router)
app.include_router(documents.router)
app.include_router(payments.router)
app.include_router(notifications.router, prefix="/notifications", tags=["notifications"])


@app.middleware("http")
async def request_logging(request: Request, call_next):
    request_id, token = assign_request_id(request)
    started = time.perf_counter()
    try:
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            "%s %s -> %s (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response
    finally:
        release_request_id(token)


@app.get("/health", tags=["system"])
def health() -> dict:
    return {"status": "ok"}


@app.on_event("startup")
async def configure_notification_center() -> None:
    notification_center.configure_loop(asyncio.get_running_loop())


@app.on_event("shutdown")
async def shutdown_notification_center() -> None:
    await notification_center.shutdown()
