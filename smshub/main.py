"""SMS Hub identity service – FastAPI application."""
# Load .env before any app code that might read config
from dotenv import load_dotenv
from pathlib import Path
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from smshub.config import get_settings
from smshub.database import Base, engine
# Import models so Base.metadata has all tables before create_all (schema source of truth)
from smshub.models import (  # noqa: F401
    AuditLog, Company, Identity, Inbox, InboxAssignment, Invitation,
    OnboardingProgress, VerificationSession,
)
from smshub.routers import admin, auth, compliance, onboarding
from smshub.services.errors import SmsHubError

settings = get_settings()
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
log = logging.getLogger("uvicorn.error")

app = FastAPI(title=settings.app_name, debug=settings.debug)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(onboarding.router)
app.include_router(compliance.router)
app.include_router(admin.router)


@app.exception_handler(SmsHubError)
def handle_smshub_error(request: Request, exc: SmsHubError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message, "code": exc.code, "details": exc.details},
    )


@app.exception_handler(RequestValidationError)
def handle_request_validation_error(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg")}
        for err in exc.errors()
    ]
    message = details[0]["message"] if details else "Invalid request"
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": message, "code": "REQUEST_INVALID", "details": details},
    )


@app.exception_handler(Exception)
def handle_unexpected_error(request: Request, exc: Exception):
    log.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "Internal error", "code": "INTERNAL_ERROR"},
    )


@app.on_event("startup")
def startup():
    if settings.mailgun_api_key and settings.mailgun_domain:
        from_addr = settings.mailgun_from_email or ""
        from_domain = from_addr.split("@")[-1].lower() if "@" in from_addr else ""
        send_domain = settings.mailgun_domain.strip().lower()
        if from_domain and from_domain != send_domain:
            log.warning("[Mailgun] from=%s does not match domain=%s. Emails may not be delivered!", from_addr, send_domain)
        else:
            log.info("[Mailgun] App using domain=%s from=%s", send_domain, from_addr or "(none)")
    elif not settings.sendgrid_api_key:
        log.warning("[Email] No email provider configured - email verification codes will not be sent")
    if not settings.sms_webhook_url and not (settings.twilio_account_sid and settings.twilio_auth_token):
        log.warning("[SMS] No SMS provider configured - SMS verification codes will not be sent")
    try:
        Base.metadata.create_all(bind=engine)
    except Exception as e:
        log.warning("Database startup failed (tables skipped). Check DATABASE_URL and network. Error: %s", e)

    if settings.expiry_sweep_enabled:
        from apscheduler.schedulers.background import BackgroundScheduler
        from smshub.services.expiry_sweep import run_expiry_sweep_job
        scheduler = BackgroundScheduler()
        scheduler.add_job(run_expiry_sweep_job, "interval", minutes=settings.expiry_sweep_interval_minutes)
        scheduler.start()
        app.state.scheduler = scheduler


@app.on_event("shutdown")
def shutdown():
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None:
        scheduler.shutdown(wait=False)


@app.get("/")
def root():
    return {"app": settings.app_name, "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}
