import asyncio
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from app.config import settings
from app.database import Base, SessionLocal, engine
from app.errors import AppError
from app.logging_config import get_logger, setup_logging
from app.routers import (
    absences,
    auth,
    daily_briefing,
    dashboard,
    hour_tracking,
    language_settings,
    locations,
    notifications,
    schedules,
    teams,
    traffic,
    users,
    whatsapp,
)
from app.services.briefing_service import run_due_briefings
from app.services.collaborators import get_collaborators
from app.services.conversation_service import purge_expired
from app.services.notification_service import run_traffic_alerts

setup_logging(settings.log_level)
logger = get_logger("main")

app = FastAPI(
    title="Shiftline API",
    description="Employee scheduling backend with a WhatsApp assistant",
    version="0.1.0",
)

cors_origins = [origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()]
if not cors_origins:
    cors_origins = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(users.router)
app.include_router(teams.router)
app.include_router(locations.router)
app.include_router(schedules.router)
app.include_router(absences.router)
app.include_router(hour_tracking.router)
app.include_router(traffic.router)
app.include_router(language_settings.router)
app.include_router(notifications.router)
app.include_router(dashboard.router)
app.include_router(daily_briefing.router)
app.include_router(whatsapp.router)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.is_server_error:
        logger.error(
            "Request failed",
            extra={"context": {"path": request.url.path, "code": exc.code, "error": exc.message}},
        )
        return JSONResponse(status_code=exc.status_code, content={"msg": "Server error"})
    return JSONResponse(status_code=exc.status_code, content={"msg": exc.message})


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"msg": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in error.get("loc", ())[1:]), "msg": error.get("msg")}
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"msg": "Invalid request", "errors": errors})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(
        "Unhandled error",
        extra={"context": {"path": request.url.path, "error": str(exc)}},
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"msg": "Server error"})


worker_logger = get_logger("workers")
_worker_tasks: list[asyncio.Task] = []


def _workers_allowed() -> bool:
    return not os.environ.get("PYTEST_CURRENT_TEST")


async def _traffic_alert_loop() -> None:
    interval = max(settings.traffic_alert_interval_seconds, 1.0)
    while True:
        try:
            await asyncio.sleep(interval)
            db = SessionLocal()
            try:
                summary = await run_traffic_alerts(db, get_collaborators())
                db.commit()
                if summary.total:
                    worker_logger.info("Traffic alert worker processed", extra={"context": summary.as_dict()})
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()
        except asyncio.CancelledError:
            break
        except Exception as exc:
            worker_logger.error("Traffic alert loop failed", extra={"context": {"error": str(exc)}})


async def _daily_briefing_loop() -> None:
    interval = max(settings.daily_briefing_interval_seconds, 1.0)
    while True:
        try:
            await asyncio.sleep(interval)
            db = SessionLocal()
            try:
                await run_due_briefings(db, get_collaborators())
                db.commit()
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()
        except asyncio.CancelledError:
            break
        except Exception as exc:
            worker_logger.error("Daily briefing loop failed", extra={"context": {"error": str(exc)}})


async def _conversation_purge_loop() -> None:
    interval = max(settings.conversation_purge_interval_seconds, 1.0)
    while True:
        try:
            await asyncio.sleep(interval)
            db = SessionLocal()
            try:
                purge_expired(db)
                db.commit()
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()
        except asyncio.CancelledError:
            break
        except Exception as exc:
            worker_logger.error("Conversation purge loop failed", extra={"context": {"error": str(exc)}})


@app.on_event("startup")
async def on_startup() -> None:
    if settings.is_production:
        missing = settings.missing_required()
        if missing:
            logger.error("Missing required configuration", extra={"context": {"keys": missing}})
    Base.metadata.create_all(bind=engine)

    if not _workers_allowed():
        return
    _worker_tasks.append(asyncio.create_task(_conversation_purge_loop()))
    if settings.traffic_alert_worker_enabled:
        _worker_tasks.append(asyncio.create_task(_traffic_alert_loop()))
    if settings.daily_briefing_worker_enabled:
        _worker_tasks.append(asyncio.create_task(_daily_briefing_loop()))
    worker_logger.info("Background workers started", extra={"context": {"count": len(_worker_tasks)}})


@app.on_event("shutdown")
async def on_shutdown() -> None:
    for task in _worker_tasks:
        task.cancel()
    for task in _worker_tasks:
        try:
            await task
        except asyncio.CancelledError:
            pass
    _worker_tasks.clear()


@app.get("/health")
async def health():
    return {"status": "ok"}
